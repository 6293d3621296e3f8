"""PLY header extraction and parsing.

A PLY file starts with a text header terminated by the ``end_header``
token. The header declares the body format and an ordered list of
elements, each with an ordered list of properties::

    ply
    format binary_little_endian 1.0
    comment made by some exporter
    element vertex 8
    property float x
    property float y
    property float z
    element face 6
    property list uchar int vertex_indices
    end_header
"""

# Standard Library
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

# Third-Party Libraries
import numpy as np

# Local Modules
from plymesh import settings
from plymesh.errors import HeaderNotFound, MalformedHeader, UnknownPrimitiveType
from plymesh.primitives import PrimitiveType, ply_types

logger = logging.getLogger(__name__)

# control bytes (tab excepted) are read as line breaks in header text
_NON_PRINTABLE = bytes(b for b in range(256) if (b < 0x20 and b != 0x09) or b == 0x7F)
_HEADER_TRANSLATION = bytes.maketrans(_NON_PRINTABLE, b"\n" * len(_NON_PRINTABLE))


@dataclass(frozen=True)
class ScalarProperty:
    name: str
    type_name: str

    @property
    def ptype(self) -> PrimitiveType:
        return ply_types[self.type_name]


@dataclass(frozen=True)
class ListProperty:
    name: str
    count_type: str
    item_type: str

    @property
    def count_ptype(self) -> PrimitiveType:
        return ply_types[self.count_type]

    @property
    def item_ptype(self) -> PrimitiveType:
        return ply_types[self.item_type]


PropertySpec = Union[ScalarProperty, ListProperty]


@dataclass(frozen=True)
class ElementSpec:
    """A named, counted record type. Property order is the decode order."""

    name: str
    count: int
    properties: Tuple[PropertySpec, ...] = ()

    @property
    def property_names(self) -> List[str]:
        return [prop.name for prop in self.properties]

    @property
    def scalar_properties(self) -> List[ScalarProperty]:
        return [prop for prop in self.properties if isinstance(prop, ScalarProperty)]

    @property
    def list_properties(self) -> List[ListProperty]:
        return [prop for prop in self.properties if isinstance(prop, ListProperty)]

    @property
    def has_lists(self) -> bool:
        return any(isinstance(prop, ListProperty) for prop in self.properties)

    def scalar_dtype(self, endian: str = "=") -> np.dtype:
        """Structured dtype holding one record's scalar properties, packed."""
        return np.dtype(
            [(prop.name, prop.ptype.dtype(endian)) for prop in self.scalar_properties]
        )


@dataclass(frozen=True)
class Schema:
    """Parsed PLY header."""

    format: str
    version: str
    elements: Tuple[ElementSpec, ...] = ()
    comments: Tuple[str, ...] = ()
    obj_info: str = ""

    @property
    def endian(self) -> Optional[str]:
        """Byte order prefix of a binary body, ``None`` for ASCII."""
        return settings.PLY_FORMATS[self.format]

    @property
    def is_ascii(self) -> bool:
        return self.endian is None


@dataclass(frozen=True)
class HeaderExtraction:
    header_text: str
    payload_offset: int


def _is_printable(byte: int) -> bool:
    return byte not in _NON_PRINTABLE


def _starts_line(data: bytes, index: int) -> bool:
    # blanks may indent the token
    while index > 0 and data[index - 1] in b" \t":
        index -= 1
    return index == 0 or not _is_printable(data[index - 1])


def _parse_count(token: str) -> Optional[int]:
    if not (token.isascii() and token.isdigit()):
        return None
    return int(token)


def extract_header(data: bytes) -> HeaderExtraction:
    """Split raw PLY bytes into header text and the offset where the body starts.

    The terminator is matched on raw bytes, never by splitting lines, since
    the header may hold stray binary bytes and the body may start right after
    ``end_header`` without a line break. A single ``\\r\\n``, ``\\n`` or ``\\r``
    directly after the terminator belongs to the header.

    Args:
        data: Complete file contents.

    Returns:
        Header text (control bytes replaced by line breaks, terminator line
        included) and the payload offset into ``data``.

    Raises:
        HeaderNotFound: If no ``end_header`` token starts a line, possibly
            after spaces or tabs.
    """
    token = settings.HEADER_TERMINATOR
    start = 0
    while True:
        index = data.find(token, start)
        if index < 0:
            raise HeaderNotFound(
                "No '{}' terminator in {} bytes of input".format(
                    token.decode("ascii"), len(data)
                )
            )
        if _starts_line(data, index):
            break
        start = index + 1

    offset = index + len(token)
    if data[offset : offset + 2] == b"\r\n":
        offset += 2
    elif data[offset : offset + 1] in (b"\n", b"\r"):
        offset += 1

    header_text = data[:index].translate(_HEADER_TRANSLATION).decode("latin-1")
    header_text += token.decode("ascii") + "\n"
    return HeaderExtraction(header_text=header_text, payload_offset=offset)


def _check_type(type_name: str, line_no: int) -> str:
    if type_name not in ply_types:
        raise UnknownPrimitiveType(f"Unsupported PLY type: {type_name!r}", line=line_no)
    return type_name


def _make_property(
    tokens: List[str], mapping: Mapping[str, str], line_no: int
) -> PropertySpec:
    # tokens exclude the leading "property"
    if tokens and tokens[0] == "list":
        if len(tokens) < 4:
            raise MalformedHeader(
                "List property needs count type, item type and name", line=line_no
            )
        count_type = _check_type(tokens[1], line_no)
        if not ply_types[count_type].is_integer:
            raise MalformedHeader(
                f"List count type must be an integer type, not {count_type!r}",
                line=line_no,
            )
        name = mapping.get(tokens[3], tokens[3])
        return ListProperty(
            name=name,
            count_type=count_type,
            item_type=_check_type(tokens[2], line_no),
        )
    if len(tokens) < 2:
        raise MalformedHeader("Property needs a type and a name", line=line_no)
    name = mapping.get(tokens[1], tokens[1])
    return ScalarProperty(name=name, type_name=_check_type(tokens[0], line_no))


@dataclass
class _ElementDraft:
    name: str
    count: int
    line_no: int
    properties: List[PropertySpec] = field(default_factory=list)

    def add(self, prop: PropertySpec, line_no: int) -> None:
        if any(existing.name == prop.name for existing in self.properties):
            raise MalformedHeader(
                f"Duplicate property {prop.name!r} in element {self.name!r}",
                line=line_no,
            )
        self.properties.append(prop)

    def freeze(self) -> ElementSpec:
        return ElementSpec(self.name, self.count, tuple(self.properties))


def parse_header(
    text: str, property_name_mapping: Optional[Mapping[str, str]] = None
) -> Schema:
    """Parse PLY header text into a Schema.

    Args:
        text: Header text, as returned by :func:`extract_header`.
        property_name_mapping: Optional rename table applied to every
            property name; unmapped names pass through unchanged.

    Returns:
        Schema with elements and properties in file order.

    Raises:
        MalformedHeader: On grammar violations.
        UnknownPrimitiveType: If a property uses an unknown type spelling.
    """
    mapping: Dict[str, str] = dict(property_name_mapping or {})
    fmt = None
    version = None
    comments: List[str] = []
    obj_info: List[str] = []
    elements: List[ElementSpec] = []
    current: Optional[_ElementDraft] = None

    for line_no, line in enumerate(text.splitlines(), start=1):
        tokens = line.split()
        if not tokens:
            continue
        keyword, args = tokens[0], tokens[1:]

        if keyword == settings.HEADER_MAGIC:
            continue
        elif keyword == "format":
            if len(args) < 2:
                raise MalformedHeader(
                    "Format line needs a format name and a version", line=line_no
                )
            if args[0] not in settings.PLY_FORMATS:
                raise MalformedHeader(
                    f"Unsupported PLY format: {args[0]!r} "
                    f"(expected one of {sorted(settings.PLY_FORMATS)})",
                    line=line_no,
                )
            fmt, version = args[0], args[1]
        elif keyword == "comment":
            comments.append(line.strip()[len(keyword) :].strip())
        elif keyword == "obj_info":
            obj_info.append(" ".join(args))
        elif keyword == "element":
            if len(args) < 2:
                raise MalformedHeader(
                    "Element line needs a name and a count", line=line_no
                )
            count = _parse_count(args[1])
            if count is None:
                raise MalformedHeader(
                    f"Invalid count {args[1]!r} for element {args[0]!r}", line=line_no
                )
            if current is not None:
                elements.append(current.freeze())
            current = _ElementDraft(args[0], count, line_no)
        elif keyword == "property":
            if current is None:
                raise MalformedHeader(
                    "Property declared before any element", line=line_no
                )
            current.add(_make_property(args, mapping, line_no), line_no)
        elif keyword == "end_header":
            break
        else:
            logger.debug(
                f"Ignoring unknown header directive {keyword!r} (line {line_no})"
            )

    if current is not None:
        elements.append(current.freeze())
    if fmt is None:
        raise MalformedHeader("PLY header missing 'format' line")

    return Schema(
        format=fmt,
        version=version,
        elements=tuple(elements),
        comments=tuple(comments),
        obj_info=" ".join(obj_info),
    )
