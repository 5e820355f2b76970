"""
CLI commands for working with XSD schema trees.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .bulk import csv_template
from .cache import parser_config_from_string
from .errors import XSDFormError
from .models import SchemaNode
from .session import FormSession
from .xsd_parser import parse_xsd

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _load_schema(args) -> SchemaNode:
    config = parser_config_from_string(args.config or "")
    return parse_xsd(Path(args.schema), config=config)


def _write_output(text: str, output):
    if output:
        Path(output).write_text(text, encoding="utf-8")
        print(f"✓ Wrote {output}")
    else:
        sys.stdout.write(text)


def _describe(node: SchemaNode) -> str:
    occurs = node.occurs.to_dict()
    label = f"{node.name} [{occurs['min']}..{occurs['max']}]"
    if node.is_complex:
        return label
    label += f" : {node.base_type}"
    if node.use_cdata:
        label += " (cdata)"
    return label


def _print_tree(node: SchemaNode, depth: int = 0):
    indent = "  " * depth
    print(f"{indent}{_describe(node)}")
    for attr in node.attributes:
        marker = " (required)" if attr.required else ""
        print(f"{indent}  @{attr.name} : {attr.base_type}{marker}")
    for child in node.children:
        _print_tree(child, depth + 1)


def cmd_tree(args):
    """Print the parsed schema tree."""
    setup_logging(args.verbose)

    root = _load_schema(args)
    if args.json:
        print(json.dumps(root.to_dict(), indent=2))
    else:
        _print_tree(root)
    return 0


def cmd_validate(args):
    """Validate a JSON value store against a schema."""
    setup_logging(args.verbose)

    session = FormSession(_load_schema(args))
    session.values = json.loads(Path(args.values).read_text(encoding="utf-8"))
    if session.validate():
        print("✓ Values are valid")
        return 0
    print(f"✗ {len(session.errors)} validation error(s):")
    for path, message in session.errors.items():
        print(f"  {path}: {message}")
    return 1


def cmd_generate(args):
    """Generate XML from a JSON value store."""
    setup_logging(args.verbose)

    session = FormSession(_load_schema(args))
    session.values = json.loads(Path(args.values).read_text(encoding="utf-8"))
    for path in args.cdata or []:
        session.cdata_overrides[path] = True
    for path in args.no_cdata or []:
        session.cdata_overrides[path] = False

    if not args.no_validate and not session.validate():
        print(f"✗ Cannot generate XML, {len(session.errors)} validation error(s):")
        for path, message in session.errors.items():
            print(f"  {path}: {message}")
        return 1
    _write_output(session.generate_xml(strict=False), args.output)
    return 0


def cmd_import(args):
    """Import an XML document into a JSON value store."""
    setup_logging(args.verbose)

    session = FormSession(_load_schema(args))
    session.import_xml(Path(args.xml).read_bytes())
    _write_output(json.dumps(session.values, indent=2) + "\n", args.output)
    return 0


def cmd_template(args):
    """Write the CSV template for a repeating element."""
    setup_logging(args.verbose)

    node = FormSession(_load_schema(args)).node_at(args.path)
    if not isinstance(node, SchemaNode) or not node.multiple:
        print(f"✗ {args.path} is not a repeating element")
        return 1
    _write_output(csv_template(node), args.output)
    return 0


def _add_schema_arguments(subparser):
    subparser.add_argument("schema", help="Path to the XSD file")
    subparser.add_argument(
        "--config",
        help="Parser options as key=value pairs (e.g. resolve_named_types=true)"
    )


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="XSD form schema CLI",
        prog="xsd-forms"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands"
    )

    # Tree command
    tree_parser = subparsers.add_parser(
        "tree",
        help="Print the schema tree"
    )
    _add_schema_arguments(tree_parser)
    tree_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the tree as JSON"
    )
    tree_parser.set_defaults(func=cmd_tree)

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a JSON value store"
    )
    _add_schema_arguments(validate_parser)
    validate_parser.add_argument("values", help="JSON file with the value store")
    validate_parser.set_defaults(func=cmd_validate)

    # Generate command
    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate XML from a JSON value store"
    )
    _add_schema_arguments(generate_parser)
    generate_parser.add_argument("values", help="JSON file with the value store")
    generate_parser.add_argument("-o", "--output", help="Write XML to this file")
    generate_parser.add_argument(
        "--cdata",
        action="append",
        metavar="PATH",
        help="Force CDATA for a path (repeatable)"
    )
    generate_parser.add_argument(
        "--no-cdata",
        action="append",
        metavar="PATH",
        help="Disable CDATA for a path (repeatable)"
    )
    generate_parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Generate even if validation fails"
    )
    generate_parser.set_defaults(func=cmd_generate)

    # Import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import an XML document into a JSON value store"
    )
    _add_schema_arguments(import_parser)
    import_parser.add_argument("xml", help="XML document to import")
    import_parser.add_argument("-o", "--output", help="Write JSON to this file")
    import_parser.set_defaults(func=cmd_import)

    # Template command
    template_parser = subparsers.add_parser(
        "template",
        help="Write the CSV template for a repeating element"
    )
    _add_schema_arguments(template_parser)
    template_parser.add_argument("path", help="Path of the repeating element")
    template_parser.add_argument("-o", "--output", help="Write CSV to this file")
    template_parser.set_defaults(func=cmd_template)

    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except (XSDFormError, OSError, json.JSONDecodeError) as e:
        print(f"✗ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
