# Standard Library
import struct
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

# Third-Party Libraries
import numpy as np

# Local Modules
from plymesh.errors import MalformedPayload, UnknownPrimitiveType

Number = Union[int, float]


@dataclass(frozen=True)
class PrimitiveType:
    """One of the 8 PLY scalar type families.

    Attributes:
        name: Canonical (classic) spelling, e.g. ``uchar``.
        sized_name: Sized spelling, e.g. ``uint8``.
        struct_char: ``struct`` format character.
        np_code: numpy type code without byte order, e.g. ``u1``.
        is_integer: Whether the family holds integers (affects ASCII parsing).
    """

    name: str
    sized_name: str
    struct_char: str
    np_code: str
    is_integer: bool

    @property
    def byte_width(self) -> int:
        return struct.calcsize("<" + self.struct_char)

    def dtype(self, endian: str = "=") -> np.dtype:
        return np.dtype(endian + self.np_code)


PLY_PRIMITIVE_TYPES: Tuple[PrimitiveType, ...] = (
    PrimitiveType("char", "int8", "b", "i1", True),
    PrimitiveType("uchar", "uint8", "B", "u1", True),
    PrimitiveType("short", "int16", "h", "i2", True),
    PrimitiveType("ushort", "uint16", "H", "u2", True),
    PrimitiveType("int", "int32", "i", "i4", True),
    PrimitiveType("uint", "uint32", "I", "u4", True),
    PrimitiveType("float", "float32", "f", "f4", False),
    PrimitiveType("double", "float64", "d", "f8", False),
)

# Both spellings of each family
ply_types: Dict[str, PrimitiveType] = {}
for _ptype in PLY_PRIMITIVE_TYPES:
    ply_types[_ptype.name] = _ptype
    ply_types[_ptype.sized_name] = _ptype


def lookup_type(type_name: str) -> PrimitiveType:
    """Return the type family for a PLY type spelling.

    Raises:
        UnknownPrimitiveType: If the spelling is not one of the 16 accepted.
    """
    try:
        return ply_types[type_name]
    except KeyError:
        raise UnknownPrimitiveType(f"Unsupported PLY type: {type_name!r}") from None


def _check_token(token: Union[str, bytes]) -> Union[str, bytes]:
    # Python accepts "1_000", PLY does not
    if (b"_" if isinstance(token, bytes) else "_") in token:
        raise ValueError(f"Digit separator in {token!r}")
    return token


def parse_ascii_float(token: Union[str, bytes]) -> float:
    return float(_check_token(token))


def parse_ascii_integer(token: Union[str, bytes]) -> int:
    """Parse a decimal integer token, accepting float spellings like ``3.0``."""
    token = _check_token(token)
    try:
        return int(token)
    except ValueError:
        value = float(token)
        if not value.is_integer():
            raise
        return int(value)


class PrimitiveReader:
    """Decoder for one primitive type at a fixed endianness.

    Resolved once per property and reused for every record of an element.
    """

    def __init__(self, ptype: PrimitiveType, endian: str = "<") -> None:
        self.ptype = ptype
        self.endian = endian
        self._struct = struct.Struct(endian + ptype.struct_char)
        self.byte_width = self._struct.size
        self.dtype = ptype.dtype(endian)
        self._parse_token = (
            parse_ascii_integer if ptype.is_integer else parse_ascii_float
        )
        self._bounds = None
        if ptype.is_integer:
            info = np.iinfo(ptype.dtype())
            self._bounds = (int(info.min), int(info.max))

    def __repr__(self) -> str:
        return f"PrimitiveReader({self.ptype.name!r}, endian={self.endian!r})"

    def decode_binary(self, buffer: bytes, offset: int) -> Number:
        """Read a single value at ``offset``; the caller advances by ``byte_width``."""
        return self._struct.unpack_from(buffer, offset)[0]

    def decode_binary_array(self, buffer: bytes, offset: int, count: int) -> np.ndarray:
        """Read ``count`` consecutive values at ``offset``, in native byte order."""
        if count == 0:
            return np.empty(0, dtype=self.ptype.dtype())
        values = np.frombuffer(buffer, dtype=self.dtype, count=count, offset=offset)
        return values.astype(self.ptype.dtype())

    def decode_ascii(
        self, token: Union[str, bytes], index: Optional[int] = None
    ) -> Number:
        """Parse one whitespace-delimited token.

        Args:
            token: Token text.
            index: Token position in the body, used for error context.
        """
        try:
            value = self._parse_token(token)
        except ValueError:
            if isinstance(token, bytes):
                token = token.decode("ascii", errors="replace")
            raise MalformedPayload(
                f"Cannot parse {token!r} as PLY {self.ptype.name}", offset=index
            ) from None
        if self._bounds is not None and not (
            self._bounds[0] <= value <= self._bounds[1]
        ):
            raise MalformedPayload(
                f"Value {value} out of range for PLY {self.ptype.name}", offset=index
            )
        return value


class TypeReaderRegistry:
    """Maps PLY type spellings to readers, per byte order.

    Readers are cached, so asking twice for ``float`` and ``float32`` at
    the same endianness returns the same object.
    """

    def __init__(self) -> None:
        self._cache: Dict[Tuple[str, str], PrimitiveReader] = {}

    def reader(self, type_name: str, endian: str = "<") -> PrimitiveReader:
        ptype = lookup_type(type_name)
        key = (ptype.name, endian)
        if key not in self._cache:
            self._cache[key] = PrimitiveReader(ptype, endian)
        return self._cache[key]


registry = TypeReaderRegistry()
