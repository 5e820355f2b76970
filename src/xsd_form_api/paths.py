"""Path addressing for values inside a nested value store.

A path names one field's location using dot-joined segments:

* a plain identifier names an element (``Invoice``),
* ``@name`` names an attribute of the preceding element (``Invoice.@id``),
* an integer is an array index following the repeating element's own name
    (``Invoice.Items.0.Sku``).

The same scheme keys the value store, the CDATA override map and the
validation error map, so a path produced by one component addresses the same
field in every other one. Internally the engine works with the structured
:class:`Path`; strings are only produced or parsed at the boundary.

Example::

        from xsd_form_api.paths import Path

        path = Path.parse("Invoice.Items.0.Sku")
        path.segments[2]                 # Index(index=0)
        str(path.parent.attr("code"))    # 'Invoice.Items.0.@code'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True)
class Name:
    """Element name segment."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Attr:
    """Attribute segment, rendered with an ``@`` prefix."""

    name: str

    def __str__(self) -> str:
        return f"@{self.name}"


@dataclass(frozen=True)
class Index:
    """Array position segment."""

    index: int

    def __str__(self) -> str:
        return str(self.index)


Segment = Union[Name, Attr, Index]


def parse_segment(raw: str) -> Segment:
    if not raw:
        raise ValueError("Empty path segment")
    if raw.startswith("@"):
        if len(raw) == 1:
            raise ValueError("Attribute segment without a name")
        return Attr(raw[1:])
    if raw.isdigit():
        return Index(int(raw))
    return Name(raw)


@dataclass(frozen=True)
class Path:
    """Immutable ordered sequence of path segments."""

    segments: Tuple[Segment, ...] = ()

    @classmethod
    def parse(cls, value: Union[str, "Path"]) -> "Path":
        if isinstance(value, Path):
            return value
        if not value:
            return cls()
        return cls(tuple(parse_segment(part) for part in value.split(".")))

    @classmethod
    def root(cls, name: str) -> "Path":
        return cls((Name(name),))

    def child(self, name: str) -> "Path":
        return Path(self.segments + (Name(name),))

    def attr(self, name: str) -> "Path":
        return Path(self.segments + (Attr(name),))

    def index(self, position: int) -> "Path":
        return Path(self.segments + (Index(position),))

    @property
    def parent(self) -> "Path":
        return Path(self.segments[:-1])

    @property
    def last(self) -> Segment:
        return self.segments[-1]

    def __len__(self) -> int:
        return len(self.segments)

    def __bool__(self) -> bool:
        return bool(self.segments)

    def __str__(self) -> str:
        return ".".join(str(segment) for segment in self.segments)


PathLike = Union[str, Path]


def join(prefix: str, name: str) -> str:
    """Dot-join a column prefix and a name, omitting an empty prefix."""
    return f"{prefix}.{name}" if prefix else name
