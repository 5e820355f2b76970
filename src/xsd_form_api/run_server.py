"""Executable entry point for launching the XSD Form FastAPI application.

Process managers can import the ``app`` object from ``xsd_form_api.app``
directly; this module exists for ``python -m xsd_form_api.run_server``.

Environment Variables:
    PORT (int): Override listening port (default 8000).
    XSD_FORMS_SCHEMA_DIR: Directory of saved schemas (default ``saved-schemas``).

Example:
    $ python -m xsd_form_api.run_server
    $ PORT=9000 XSD_FORMS_SCHEMA_DIR=/data/schemas python -m xsd_form_api.run_server
"""

from __future__ import annotations

import logging
import os

import uvicorn

from .app import app


def main() -> None:
    """Launch uvicorn on ``0.0.0.0:$PORT`` with INFO logging."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
