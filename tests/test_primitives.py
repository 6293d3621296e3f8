import struct

import numpy as np
import pytest

from plymesh.errors import MalformedPayload, UnknownPrimitiveType
from plymesh.primitives import (
    PLY_PRIMITIVE_TYPES,
    TypeReaderRegistry,
    lookup_type,
    parse_ascii_integer,
)


class TestLookup:
    @pytest.mark.parametrize(
        "classic, sized, width",
        [
            ("char", "int8", 1),
            ("uchar", "uint8", 1),
            ("short", "int16", 2),
            ("ushort", "uint16", 2),
            ("int", "int32", 4),
            ("uint", "uint32", 4),
            ("float", "float32", 4),
            ("double", "float64", 8),
        ],
    )
    def test_both_spellings_share_a_family(self, classic, sized, width) -> None:
        assert lookup_type(classic) is lookup_type(sized)
        assert lookup_type(classic).byte_width == width

    def test_eight_families(self) -> None:
        assert len(PLY_PRIMITIVE_TYPES) == 8

    def test_unknown_spelling(self) -> None:
        with pytest.raises(UnknownPrimitiveType, match="int64"):
            lookup_type("int64")


class TestBinaryReaders:
    def test_endianness(self) -> None:
        registry = TypeReaderRegistry()
        little = registry.reader("int", "<")
        big = registry.reader("int32", ">")
        assert little.decode_binary(struct.pack("<i", -7), 0) == -7
        assert big.decode_binary(struct.pack(">i", -7), 0) == -7

    def test_offset(self) -> None:
        reader = TypeReaderRegistry().reader("ushort", ">")
        data = b"\xff" + struct.pack(">H", 513)
        assert reader.byte_width == 2
        assert reader.decode_binary(data, 1) == 513

    def test_readers_are_cached(self) -> None:
        registry = TypeReaderRegistry()
        assert registry.reader("float", "<") is registry.reader("float32", "<")
        assert registry.reader("float", "<") is not registry.reader("float", ">")

    def test_array_is_native_order(self) -> None:
        reader = TypeReaderRegistry().reader("float", ">")
        data = struct.pack(">3f", 1.0, 2.5, -3.0)
        values = reader.decode_binary_array(data, 0, 3)
        np.testing.assert_array_equal(values, [1.0, 2.5, -3.0])
        assert values.dtype == np.dtype("=f4")

    def test_empty_array(self) -> None:
        reader = TypeReaderRegistry().reader("int", "<")
        assert reader.decode_binary_array(b"", 0, 0).shape == (0,)


class TestAsciiReaders:
    def test_integer_family(self) -> None:
        reader = TypeReaderRegistry().reader("uchar")
        assert reader.decode_ascii("255") == 255
        assert isinstance(reader.decode_ascii("3"), int)

    def test_integer_written_as_float(self) -> None:
        assert parse_ascii_integer("3.0") == 3

    def test_integer_rejects_fraction(self) -> None:
        reader = TypeReaderRegistry().reader("int")
        with pytest.raises(MalformedPayload, match="2.5"):
            reader.decode_ascii("2.5", 4)

    def test_float_family(self) -> None:
        reader = TypeReaderRegistry().reader("double")
        assert reader.decode_ascii("-1.25e2") == -125.0

    def test_garbage_token_reports_index(self) -> None:
        reader = TypeReaderRegistry().reader("float")
        with pytest.raises(MalformedPayload) as info:
            reader.decode_ascii("abc", 17)
        assert info.value.offset == 17

    @pytest.mark.parametrize("type_name", ["int", "uchar", "float", "double"])
    def test_digit_separator_rejected(self, type_name) -> None:
        reader = TypeReaderRegistry().reader(type_name)
        with pytest.raises(MalformedPayload, match="1_0"):
            reader.decode_ascii("1_0", 2)
