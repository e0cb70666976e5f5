import pytest

from act_generator.errors import FilterError, GeneratorError
from act_generator import filters


def test_parse_number_leading_numeric_prefix():
    assert filters.parse_number("12.5kg") == 12.5
    assert filters.parse_number("-3") == -3.0
    assert filters.parse_number("abc") is None
    assert filters.parse_number("") is None


def test_truncate():
    assert filters.truncate("Hello world", "20") == "Hello world"
    assert filters.truncate("Hello world", "6") == "Hello..."
    assert filters.truncate("Hello world", "5", "…") == "Hello…"


def test_truncate_requires_integer_length():
    with pytest.raises(FilterError):
        filters.truncate("Hello", None)
    with pytest.raises(FilterError):
        filters.truncate("Hello", "abc")


def test_currency():
    assert filters.currency("1234.5") == "$1,234.50"
    assert filters.currency("1234.5", "gbp") == "£1,234.50"
    assert filters.currency("-5", "USD") == "-$5.00"
    assert filters.currency("1234.4", "JPY") == "¥1,234"
    assert filters.currency("1234", "SEK") == "SEK 1,234.00"


def test_currency_malformed_code_falls_back_to_dollars():
    assert filters.currency("5", "X1") == "$5.00"


def test_currency_non_numeric():
    with pytest.raises(FilterError):
        filters.currency("free")


def test_number():
    assert filters.number("1234.5") == "1,234.5"
    assert filters.number("1000") == "1,000"
    assert filters.number("3.14159", "2") == "3.14"
    assert filters.number("7", "0") == "7"


@pytest.mark.parametrize("decimals", ["-1", "x"])
def test_number_invalid_decimals(decimals):
    with pytest.raises(FilterError):
        filters.number("5", decimals)


def test_percent():
    assert filters.percent("0.5") == "50.0%"


def test_format_date():
    assert filters.format_date("2024-01-05", "DD/MM/YYYY") == "05/01/2024"
    assert filters.format_date("2024/01/05", "YYYY-MM-DD") == "2024-01-05"
    assert filters.format_date("2024-01-05T23:30:00+02:00", "YYYY-MM-DD HH:mm") == "2024-01-05 21:30"


def test_format_date_errors():
    with pytest.raises(FilterError):
        filters.format_date("2024-01-05")
    with pytest.raises(FilterError):
        filters.format_date("", "YYYY")


def test_format_date_accepts_utc_designator():
    assert filters.format_date("2024-01-15T10:00:00Z", "YYYY-MM-DD HH:mm") == "2024-01-15 10:00"
    assert filters.format_date("2024-01-15T23:30:00z", "DD/MM") == "15/01"


def test_colon_split_arguments_are_rejoined():
    assert filters.format_date("2024-01-15T14:30:05", "HH", "mm", "ss") == "14:30:05"
    assert filters.truncate("abcdefghij", "5", "..", "") == "abcde..:"
    assert filters.replace("t=1", "=", "", "") == "t:1"
    assert filters.default("", "12", "00") == "12:00"


def test_surplus_arguments_are_ignored():
    assert filters.currency("5", "EUR", "extra") == "€5.00"
    assert filters.number("1234.5", "1", "extra") == "1,234.5"
    assert filters.uppercase("nike", "loud") == "NIKE"


def test_text_filters():
    assert filters.slug("Hello World!") == "hello-world"
    assert filters.replace("a-b-c", "-") == "abc"
    assert filters.replace("abc", "", "x") == "abc"
    assert filters.default("", "fallback") == "fallback"
    assert filters.default("value", "fallback") == "value"
    assert filters.titlecase("the quick fox") == "The Quick Fox"


def test_filter_error_hierarchy():
    assert issubclass(FilterError, GeneratorError)
    assert issubclass(FilterError, ValueError)


def test_builtin_registry_names():
    assert set(filters.BUILTIN_FILTERS) == {
        "uppercase", "lowercase", "capitalize", "titlecase", "trim", "truncate",
        "currency", "number", "percent", "format", "slug", "replace", "default",
    }
