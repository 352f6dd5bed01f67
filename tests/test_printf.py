import math

import pytest

from osmem.printf import fctprintf, format_string, printf, snprintf, sprintf


@pytest.mark.parametrize(
    "fmt, value",
    [
        ("%d", 42),
        ("%i", -123),
        ("%5d", 42),
        ("%-5d|", 42),
        ("%05d", -42),
        ("%+d", 7),
        ("% d", 7),
        ("%x", 255),
        ("%X", 255),
        ("%#x", 255),
        ("%o", 8),
        ("%u", 42),
        ("%.3d", 7),
        ("%s", "hello"),
        ("%10s", "hi"),
        ("%-10s|", "hi"),
        ("%.2s", "hello"),
        ("%c", "A"),
        ("%.2f", 3.25),
        ("%8.3f", -2.5),
        ("%.0f", 2.5),
        ("%e", 1.5),
        ("%E", 1.5),
    ],
)
def test_agrees_with_standard_formatting(fmt, value):
    assert format_string(fmt, value) == fmt % value


def test_literal_text_and_percent():
    assert format_string("100%% done") == "100% done"
    assert format_string("plain text") == "plain text"


def test_binary_conversion():
    assert format_string("%b", 5) == format(5, "b")
    assert format_string("%#b", 5) == "0b" + format(5, "b")


def test_integer_truncation_to_c_types():
    assert format_string("%d", 2**32 + 5) == "5"
    assert format_string("%hhd", 255) == "%d" % -1
    assert format_string("%hu", 65537) == "1"
    assert format_string("%u", -1) == str(2**32 - 1)
    assert format_string("%lld", 2**40) == str(2**40)
    assert format_string("%zu", 2**40) == str(2**40)


def test_star_width_and_precision():
    assert format_string("%*d", 5, 42) == "%5d" % 42
    assert format_string("%*d|", -5, 42) == "%-5d|" % 42
    assert format_string("%.*s", 2, "hello") == "hello"[:2]


def test_pointer_is_uppercase_hex_padded_to_sixteen():
    assert format_string("%p", 0xABC) == "%016X" % 0xABC
    assert format_string("%p", None) == "0" * 16


def test_special_float_values():
    assert format_string("%f", math.nan) == "nan"
    assert format_string("%f", math.inf) == "inf"
    assert format_string("%+f", math.inf) == "+inf"
    assert format_string("%f", -math.inf) == "-inf"


def test_adaptive_float_in_unit_range_uses_fixed_notation():
    assert format_string("%g", 1.5) == "%.5f" % 1.5


def test_format_stops_at_nul_and_trailing_percent():
    assert format_string("ab\0cd") == "ab"
    assert format_string("abc%") == "abc"


def test_unknown_conversion_emits_character():
    assert format_string("%y") == "y"


def test_sprintf_matches_format_string():
    assert sprintf("%s=%d", "x", 3) == format_string("%s=%d", "x", 3)


def test_snprintf_truncates_and_reports_full_length():
    text, length = snprintf(5, "%s", "hello world")
    assert text == "hello world"[:4]
    assert length == len("hello world")


def test_snprintf_zero_and_large_counts():
    assert snprintf(0, "%d", 12345) == ("", 5)
    assert snprintf(100, "%d", 12345) == ("12345", 5)


def test_snprintf_rejects_negative_count():
    with pytest.raises(ValueError):
        snprintf(-1, "x")


def test_printf_writes_to_stdout(capsys):
    count = printf("%s %d\n", "value", 9)
    assert capsys.readouterr().out == "value 9\n"
    assert count == len("value 9\n")


def test_printf_counts_but_skips_nul_characters(capsys):
    count = printf("a%cb", 0)
    assert capsys.readouterr().out == "ab"
    assert count == 3


def test_fctprintf_passes_each_character():
    collected = []
    count = fctprintf(collected.append, "%3d", 7)
    assert collected == list("%3d" % 7)
    assert count == 3


def test_missing_arguments_raise():
    with pytest.raises(TypeError):
        format_string("%d %d", 1)


def test_float_given_for_integer_conversion_raises():
    with pytest.raises(TypeError):
        format_string("%d", 1.5)


def test_multi_character_string_for_char_conversion_raises():
    with pytest.raises(TypeError):
        format_string("%c", "ab")