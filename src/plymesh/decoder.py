# Standard Library
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Sequence, Tuple, Union

# Third-Party Libraries
import numpy as np
from tqdm import tqdm

# Local Modules
from plymesh.errors import MalformedPayload, TruncatedPayload
from plymesh.header import ElementSpec, ListProperty, Schema
from plymesh.primitives import PrimitiveReader, TypeReaderRegistry, registry

logger = logging.getLogger(__name__)


@dataclass
class DecodedElement:
    """All records of one element.

    Attributes:
        spec: The element declaration the records follow.
        scalars: Structured array, one row per record and one field per
            scalar property, in native byte order.
        lists: List property name -> one 1-D array per record.
    """

    spec: ElementSpec
    scalars: np.ndarray
    lists: Dict[str, List[np.ndarray]] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.spec.name

    def __len__(self) -> int:
        return self.spec.count

    def column(self, name: str) -> Union[np.ndarray, List[np.ndarray]]:
        """Values of one property across all records."""
        if name in self.lists:
            return self.lists[name]
        return self.scalars[name]


# (name, is_list, reader, item_reader) resolved once per element
_PropertyReader = Tuple[str, bool, PrimitiveReader, PrimitiveReader]


def _resolve_readers(
    spec: ElementSpec, endian: str, readers: TypeReaderRegistry
) -> List[_PropertyReader]:
    table = []
    for prop in spec.properties:
        if isinstance(prop, ListProperty):
            table.append(
                (
                    prop.name,
                    True,
                    readers.reader(prop.count_type, endian),
                    readers.reader(prop.item_type, endian),
                )
            )
        else:
            reader = readers.reader(prop.type_name, endian)
            table.append((prop.name, False, reader, reader))
    return table


def _empty_element(spec: ElementSpec) -> DecodedElement:
    return DecodedElement(
        spec=spec,
        scalars=np.zeros(spec.count, dtype=spec.scalar_dtype()),
        lists={prop.name: [] for prop in spec.list_properties},
    )


def _rows_to_scalars(rows: List[tuple], spec: ElementSpec) -> np.ndarray:
    if not spec.scalar_properties:
        return np.zeros(spec.count, dtype=spec.scalar_dtype())
    return np.array(rows, dtype=spec.scalar_dtype())


def _record_loop(spec: ElementSpec, show_progress: bool):
    return tqdm(
        range(spec.count),
        total=spec.count,
        unit="rec",
        desc=spec.name,
        disable=not show_progress,
    )


# ---------------------------------------------------------------------------
# Binary bodies
# ---------------------------------------------------------------------------


def _read_binary_scalar_element(
    data: bytes, cursor: int, spec: ElementSpec, endian: str
) -> Tuple[DecodedElement, int]:
    """Decode an element without list properties in one block."""
    dtype = spec.scalar_dtype(endian)
    needed = spec.count * dtype.itemsize
    if cursor + needed > len(data):
        raise TruncatedPayload(
            f"Element {spec.name!r} needs {needed} bytes, "
            f"{len(data) - cursor} remain",
            offset=cursor,
        )
    if needed == 0:
        return _empty_element(spec), cursor

    rows = np.frombuffer(data, dtype=dtype, count=spec.count, offset=cursor)
    decoded = DecodedElement(spec=spec, scalars=rows.astype(spec.scalar_dtype()))
    return decoded, cursor + needed


def _read_binary_record_element(
    data: bytes,
    cursor: int,
    spec: ElementSpec,
    endian: str,
    readers: TypeReaderRegistry,
    show_progress: bool,
) -> Tuple[DecodedElement, int]:
    """Decode an element with list properties one record at a time."""
    table = _resolve_readers(spec, endian, readers)
    length = len(data)
    rows = []
    lists: Dict[str, List[np.ndarray]] = {
        prop.name: [] for prop in spec.list_properties
    }

    for _ in _record_loop(spec, show_progress):
        row = []
        for name, is_list, reader, item_reader in table:
            if cursor + reader.byte_width > length:
                raise TruncatedPayload(
                    f"Unexpected end of data in element {spec.name!r}, "
                    f"property {name!r}",
                    offset=cursor,
                )
            value = reader.decode_binary(data, cursor)
            cursor += reader.byte_width
            if not is_list:
                row.append(value)
                continue

            if value < 0:
                raise MalformedPayload(
                    f"Negative list length {value} in element {spec.name!r}, "
                    f"property {name!r}",
                    offset=cursor - reader.byte_width,
                )
            needed = value * item_reader.byte_width
            if cursor + needed > length:
                raise TruncatedPayload(
                    f"List {name!r} of element {spec.name!r} needs {needed} bytes, "
                    f"{length - cursor} remain",
                    offset=cursor,
                )
            lists[name].append(item_reader.decode_binary_array(data, cursor, value))
            cursor += needed
        rows.append(tuple(row))

    scalars = _rows_to_scalars(rows, spec)
    return DecodedElement(spec=spec, scalars=scalars, lists=lists), cursor


def decode_binary(
    schema: Schema,
    data: bytes,
    offset: int,
    readers: TypeReaderRegistry = registry,
    show_progress: bool = False,
) -> Iterator[DecodedElement]:
    """Decode a binary body, element by element, in schema order.

    A single cursor runs over the whole body. Records are packed with no
    alignment padding, so every element, wanted or not, must be walked to
    find where the next one starts.

    Args:
        schema: Parsed header with a binary format.
        data: Complete file contents.
        offset: Payload offset, where the first record starts.
        readers: Registry used to resolve property readers.
        show_progress: Show a progress bar for per-record loops.

    Yields:
        One DecodedElement per declared element.

    Raises:
        TruncatedPayload: If the body ends before the last declared record.
        MalformedPayload: If a list length is negative.
    """
    endian = schema.endian
    cursor = offset
    for spec in schema.elements:
        if spec.has_lists:
            decoded, cursor = _read_binary_record_element(
                data, cursor, spec, endian, readers, show_progress
            )
        else:
            decoded, cursor = _read_binary_scalar_element(data, cursor, spec, endian)
        yield decoded

    if cursor < len(data):
        logger.debug(f"Ignoring {len(data) - cursor} trailing bytes after last element")


# ---------------------------------------------------------------------------
# ASCII bodies
# ---------------------------------------------------------------------------


def _require_tokens(
    tokens: Sequence[str], cursor: int, count: int, spec: ElementSpec
) -> None:
    if cursor + count > len(tokens):
        raise TruncatedPayload(
            f"Ran out of tokens in element {spec.name!r} "
            f"({len(tokens) - cursor} left, {count} needed)",
            offset=cursor,
        )


def _read_ascii_scalar_element(
    tokens: Sequence[str], cursor: int, spec: ElementSpec, readers: TypeReaderRegistry
) -> Tuple[DecodedElement, int]:
    """Decode an element without list properties column by column."""
    width = len(spec.properties)
    needed = spec.count * width
    _require_tokens(tokens, cursor, needed, spec)

    scalars = np.zeros(spec.count, dtype=spec.scalar_dtype())
    for column, prop in enumerate(spec.properties):
        reader = readers.reader(prop.type_name)
        start = cursor + column
        values = [
            reader.decode_ascii(token, start + i * width)
            for i, token in enumerate(tokens[start : cursor + needed : width])
        ]
        scalars[prop.name] = values
    return DecodedElement(spec=spec, scalars=scalars), cursor + needed


def _read_ascii_record_element(
    tokens: Sequence[str],
    cursor: int,
    spec: ElementSpec,
    readers: TypeReaderRegistry,
    show_progress: bool,
) -> Tuple[DecodedElement, int]:
    """Decode an element with list properties one record at a time."""
    table = _resolve_readers(spec, "<", readers)
    rows = []
    lists: Dict[str, List[np.ndarray]] = {
        prop.name: [] for prop in spec.list_properties
    }

    for _ in _record_loop(spec, show_progress):
        row = []
        for name, is_list, reader, item_reader in table:
            _require_tokens(tokens, cursor, 1, spec)
            value = reader.decode_ascii(tokens[cursor], cursor)
            cursor += 1
            if not is_list:
                row.append(value)
                continue

            if value < 0:
                raise MalformedPayload(
                    f"Negative list length {value} in element {spec.name!r}, "
                    f"property {name!r}",
                    offset=cursor - 1,
                )
            _require_tokens(tokens, cursor, value, spec)
            items = [
                item_reader.decode_ascii(tokens[cursor + k], cursor + k)
                for k in range(value)
            ]
            lists[name].append(np.array(items, dtype=item_reader.ptype.dtype()))
            cursor += value
        rows.append(tuple(row))

    scalars = _rows_to_scalars(rows, spec)
    return DecodedElement(spec=spec, scalars=scalars, lists=lists), cursor


def decode_ascii(
    schema: Schema,
    data: bytes,
    offset: int,
    readers: TypeReaderRegistry = registry,
    show_progress: bool = False,
) -> Iterator[DecodedElement]:
    """Decode an ASCII body, element by element, in schema order.

    The body is read as one flat run of whitespace separated tokens; line
    breaks carry no meaning, so a record may span lines or share one.

    Raises:
        TruncatedPayload: If the tokens run out before the last declared record.
        MalformedPayload: If a token does not parse as its declared type.
    """
    tokens = data[offset:].decode("latin-1").split()
    cursor = 0
    for spec in schema.elements:
        if spec.has_lists:
            decoded, cursor = _read_ascii_record_element(
                tokens, cursor, spec, readers, show_progress
            )
        else:
            decoded, cursor = _read_ascii_scalar_element(tokens, cursor, spec, readers)
        yield decoded

    if cursor < len(tokens):
        logger.debug(
            f"Ignoring {len(tokens) - cursor} trailing tokens after last element"
        )


def decode_elements(
    schema: Schema,
    data: bytes,
    offset: int,
    readers: TypeReaderRegistry = registry,
    show_progress: bool = False,
) -> Iterator[DecodedElement]:
    """Decode every element of ``data`` following ``schema``'s body format."""
    if schema.is_ascii:
        return decode_ascii(schema, data, offset, readers, show_progress)
    return decode_binary(schema, data, offset, readers, show_progress)
