"""Tests for confbind.coercion module."""

import struct
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime, timedelta
from typing import Optional

import pytest

from confbind.coercion import (
    parse_bool,
    parse_duration,
    parse_value,
    strip_annotated,
    type_name,
    unwrap_optional,
)
from confbind.exceptions import CoercionError, InvalidMapEntryError, UnsupportedTypeError
from confbind.types import Float32, Int8, IntBits, Uint8, Uint16


class Level:
    """Custom setter type accepting a fixed set of names."""

    def __init__(self, name="info"):
        self.name = name
        self.calls = 0

    def set_value(self, raw):
        self.calls += 1
        if raw.lower() not in ("debug", "info", "error"):
            raise ValueError(f"unknown level {raw!r}")
        self.name = raw.lower()


class TestTypeIntrospection:
    """Tests for type hint helpers."""

    def test_unwrap_optional(self):
        """Test Optional and PEP 604 unions are unwrapped."""
        assert unwrap_optional(Optional[int]) == (int, True)
        assert unwrap_optional(int | None) == (int, True)
        assert unwrap_optional(int) == (int, False)

    def test_unwrap_leaves_wide_unions(self):
        """Test unions of several types are returned unchanged."""
        tp = int | str | None
        assert unwrap_optional(tp) == (tp, False)

    def test_strip_annotated(self):
        """Test Annotated metadata is split off."""
        base, extras = strip_annotated(Uint8)
        assert base is int
        assert extras == (IntBits(8, signed=False),)

    def test_type_name(self):
        """Test short type names."""
        assert type_name(int) == "int"
        assert type_name(Uint16) == "uint16"
        assert type_name(Optional[str]) == "str | None"
        assert type_name(list[str]) == "list[str]"


class TestScalarParsing:
    """Tests for string, boolean and numeric coercion."""

    def test_string_is_verbatim(self):
        """Test strings are returned unchanged, whitespace included."""
        assert parse_value("  spaced  ", str) == "  spaced  "

    @pytest.mark.parametrize("raw", ["1", "t", "T", "true", "TRUE", "yes", "on"])
    def test_true_literals(self, raw):
        """Test accepted true literals."""
        assert parse_value(raw, bool) is True

    @pytest.mark.parametrize("raw", ["0", "f", "F", "false", "False", "no", "off"])
    def test_false_literals(self, raw):
        """Test accepted false literals."""
        assert parse_value(raw, bool) is False

    def test_invalid_bool(self):
        """Test anything else fails."""
        with pytest.raises(CoercionError) as exc_info:
            parse_value("maybe", bool)
        assert exc_info.value.raw_value == "maybe"
        assert exc_info.value.target_type == "bool"
        with pytest.raises(ValueError):
            parse_bool("")

    def test_int_bases(self):
        """Test integer literals with base prefixes and underscores."""
        assert parse_value("42", int) == 42
        assert parse_value("-7", int) == -7
        assert parse_value("0x1F", int) == 31
        assert parse_value("0o17", int) == 15
        assert parse_value("0b101", int) == 5
        assert parse_value("1_000", int) == 1000
        assert parse_value("0755", int) == 0o755
        assert parse_value("-010", int) == -8
        assert parse_value("0", int) == 0
        with pytest.raises(CoercionError):
            parse_value("089", int)

    @pytest.mark.parametrize("raw", [" 42", "42 ", "4\t2", "\u0664\u0662"])
    def test_int_literal_is_strict(self, raw):
        """Test whitespace and non-ASCII digits are rejected."""
        with pytest.raises(CoercionError):
            parse_value(raw, int)

    def test_invalid_int(self):
        """Test non-numeric integers fail with the original error as cause."""
        with pytest.raises(CoercionError) as exc_info:
            parse_value("abc", int)
        assert isinstance(exc_info.value.cause, ValueError)

    def test_sized_int_range(self):
        """Test sized aliases reject out-of-range values."""
        assert parse_value("255", Uint8) == 255
        assert parse_value("-128", Int8) == -128
        with pytest.raises(CoercionError):
            parse_value("256", Uint8)
        with pytest.raises(CoercionError):
            parse_value("-1", Uint16)
        with pytest.raises(CoercionError):
            parse_value("128", Int8)

    def test_plain_int_is_unbounded(self):
        """Test plain int accepts values beyond 64 bits."""
        assert parse_value(str(2**70), int) == 2**70

    def test_float(self):
        """Test float parsing."""
        assert parse_value("1.5", float) == 1.5
        assert parse_value("-2e3", float) == -2000.0
        with pytest.raises(CoercionError):
            parse_value("one", float)

    def test_float32_rounding_and_range(self):
        """Test Float32 rounds to single precision and checks its range."""
        expected = struct.unpack("f", struct.pack("f", 0.1))[0]
        assert parse_value("0.1", Float32) == expected
        with pytest.raises(CoercionError):
            parse_value("1e39", Float32)

    def test_float32_max_literal(self):
        """Test the printed float32 maximum is accepted at the boundary."""
        expected = struct.unpack("f", struct.pack("f", 3.4028234663852886e38))[0]
        assert parse_value("3.4028235e38", Float32) == expected
        assert parse_value("-3.4028235e38", Float32) == -expected
        assert parse_value("inf", Float32) == float("inf")
        with pytest.raises(CoercionError):
            parse_value("3.5e38", Float32)

    def test_optional_is_unwrapped(self):
        """Test Optional[T] coerces as T."""
        assert parse_value("5", Optional[int]) == 5


class TestDurations:
    """Tests for duration literals."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("5s", timedelta(seconds=5)),
            ("300ms", timedelta(milliseconds=300)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("1.5h", timedelta(minutes=90)),
            ("-2m", timedelta(minutes=-2)),
            ("+10s", timedelta(seconds=10)),
            ("2us", timedelta(microseconds=2)),
            ("2µs", timedelta(microseconds=2)),
            ("0", timedelta(0)),
        ],
    )
    def test_valid_durations(self, raw, expected):
        """Test accepted duration literals."""
        assert parse_value(raw, timedelta) == expected

    def test_bare_number_fails(self):
        """Test a non-zero number without a unit is rejected."""
        with pytest.raises(CoercionError):
            parse_value("5", timedelta)

    @pytest.mark.parametrize("raw", ["", "s", "5x", "5 s", "1h-30m", "\u0665s"])
    def test_malformed_durations(self, raw):
        """Test malformed literals are rejected."""
        with pytest.raises(ValueError):
            parse_duration(raw)

    def test_sub_microsecond_truncated(self):
        """Test nanosecond precision is truncated."""
        assert parse_duration("1500ns") == timedelta(microseconds=1)


class TestBytes:
    """Tests for byte sequences."""

    def test_bytes_are_not_split(self):
        """Test raw strings become their UTF-8 bytes, commas included."""
        assert parse_value("hello", bytes) == b"hello"
        assert parse_value("a,b", bytes) == b"a,b"

    def test_bytearray(self):
        """Test bytearray targets."""
        assert parse_value("hi", bytearray) == bytearray(b"hi")


class TestSequences:
    """Tests for sequence coercion."""

    def test_string_list(self):
        """Test default separator splitting."""
        assert parse_value("a,b,c", list[str]) == ["a", "b", "c"]

    def test_empty_raw_gives_empty_list(self):
        """Test empty raw strings give an empty sequence, not ['']."""
        assert parse_value("", list[str]) == []
        assert parse_value("   ", list[int]) == []

    def test_custom_separator(self):
        """Test an explicit separator."""
        assert parse_value("1;2;3", list[int], separator=";") == [1, 2, 3]

    def test_elements_are_not_trimmed(self):
        """Test whitespace around elements is kept."""
        assert parse_value("a, b", list[str]) == ["a", " b"]

    def test_element_failure(self):
        """Test an invalid element fails the whole value."""
        with pytest.raises(CoercionError) as exc_info:
            parse_value("1,x,3", list[int])
        assert exc_info.value.raw_value == "x"

    def test_abstract_sequence(self):
        """Test Sequence[T] produces a list."""
        assert parse_value("1,2", Sequence[int]) == [1, 2]

    def test_sets(self):
        """Test set and frozenset targets."""
        assert parse_value("a,b,a", set[str]) == {"a", "b"}
        assert parse_value("1,2", frozenset[int]) == frozenset({1, 2})

    def test_tuples(self):
        """Test variadic and fixed-length tuples."""
        assert parse_value("1,2,3", tuple[int, ...]) == (1, 2, 3)
        assert parse_value("1,x", tuple[int, str]) == (1, "x")
        with pytest.raises(CoercionError):
            parse_value("1", tuple[int, str])

    def test_duration_elements(self):
        """Test element types use their own rules."""
        assert parse_value("1s,2m", list[timedelta]) == [
            timedelta(seconds=1),
            timedelta(minutes=2),
        ]

    def test_bare_list_holds_strings(self):
        """Test an unparameterised list holds strings."""
        assert parse_value("a,b", list) == ["a", "b"]


class TestMappings:
    """Tests for mapping coercion."""

    def test_string_mapping(self):
        """Test key:value entries."""
        assert parse_value("k1:v1,k2:v2", dict[str, str]) == {"k1": "v1", "k2": "v2"}

    def test_missing_colon(self):
        """Test an entry without ':' fails with InvalidMapEntryError."""
        with pytest.raises(InvalidMapEntryError) as exc_info:
            parse_value("bad", dict[str, str])
        assert exc_info.value.token == "bad"
        assert isinstance(exc_info.value, CoercionError)

    def test_empty_raw_gives_empty_mapping(self):
        """Test an empty raw string gives {}."""
        assert parse_value("", dict[str, int]) == {}

    def test_typed_entries_last_wins(self):
        """Test keys and values are coerced and duplicates keep the last value."""
        assert parse_value("a:1,b:2,a:3", dict[str, int]) == {"a": 3, "b": 2}
        assert parse_value("1:true", Mapping[int, bool]) == {1: True}

    def test_split_on_first_colon(self):
        """Test values may contain ':'."""
        assert parse_value("url:http://host:80", dict[str, str]) == {
            "url": "http://host:80"
        }

    def test_custom_separator(self):
        """Test an explicit entry separator."""
        assert parse_value("a:1;b:2", dict[str, int], separator=";") == {"a": 1, "b": 2}


class TestTimestamps:
    """Tests for datetime and date coercion."""

    def test_rfc3339_default(self):
        """Test ISO 8601 / RFC 3339 without a layout."""
        value = parse_value("2024-01-15T10:30:00+00:00", datetime)
        assert value == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    def test_layout(self):
        """Test an explicit strptime layout."""
        assert parse_value("15/01/2024", datetime, layout="%d/%m/%Y") == datetime(2024, 1, 15)
        assert parse_value("2024/01/15", date, layout="%Y/%m/%d") == date(2024, 1, 15)

    def test_date_iso(self):
        """Test dates without a layout."""
        assert parse_value("2024-01-15", date) == date(2024, 1, 15)

    def test_layout_mismatch(self):
        """Test a value not matching the layout fails."""
        with pytest.raises(CoercionError) as exc_info:
            parse_value("2024-01-15", datetime, layout="%d/%m/%Y")
        assert "%d/%m/%Y" in exc_info.value.message


class TestCustomSetter:
    """Tests for the set_value capability."""

    def test_current_value_is_used(self):
        """Test set_value is called on the slot's present value."""
        current = Level()
        result = parse_value("DEBUG", Level, current=current)
        assert result is current
        assert current.name == "debug"
        assert current.calls == 1

    def test_type_is_instantiated(self):
        """Test a new instance is created when the slot holds none."""
        result = parse_value("error", Optional[Level])
        assert isinstance(result, Level)
        assert result.name == "error"

    def test_setter_takes_precedence(self):
        """Test the setter wins over built-in rules for the declared type."""
        current = Level()
        assert parse_value("info", str, current=current) is current

    def test_setter_error_is_wrapped(self):
        """Test setter failures are wrapped with the original as cause."""
        with pytest.raises(CoercionError) as exc_info:
            parse_value("verbose", Level, current=Level())
        assert isinstance(exc_info.value.cause, ValueError)
        assert "unknown level" in exc_info.value.message


class TestUnsupported:
    """Tests for types without a rule."""

    def test_unsupported_type(self):
        """Test unknown types raise UnsupportedTypeError naming the type."""
        with pytest.raises(UnsupportedTypeError) as exc_info:
            parse_value("1", complex)
        assert exc_info.value.target_type == "complex"
        assert isinstance(exc_info.value, CoercionError)
