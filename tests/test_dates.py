# tests/test_dates.py

from __future__ import annotations

import pytest

from gedcom_reconcile.dates.normalizer import DateInfo, DateModifier, DatePrecision, parse_date


def test_simple_year():
    d = parse_date("1900")
    assert d.year == 1900
    assert d.precision is DatePrecision.YEAR
    assert d.modifier is DateModifier.EXACT
    assert d.to_geni_format() == "1900"


def test_month_year():
    d = parse_date("JAN 1900")
    assert (d.year, d.month) == (1900, 1)
    assert d.precision is DatePrecision.MONTH
    assert d.to_geni_format() == "1900-01"


def test_full_date():
    d = parse_date("1 JAN 1900")
    assert (d.year, d.month, d.day) == (1900, 1, 1)
    assert d.precision is DatePrecision.DAY
    assert d.to_geni_format() == "1900-01-01"


def test_iso_date():
    d = parse_date("1900-01-05")
    assert d.precision is DatePrecision.DAY
    assert d.day == 5


def test_about_keeps_original_text():
    d = parse_date("ABT 1885")
    assert d.modifier is DateModifier.ABOUT
    assert d.year == 1885
    assert d.to_geni_format() == "ABT 1885"
    assert str(d) == "ABT 1885"


@pytest.mark.parametrize("raw", ["EST 1885", "CAL 1885", "circa 1885", "c. 1885"])
def test_estimated_and_calculated_compare_as_about(raw):
    assert parse_date(raw).modifier is DateModifier.ABOUT


def test_before_and_after():
    assert parse_date("BEF 1900").modifier is DateModifier.BEFORE
    assert parse_date("AFT 1900").modifier is DateModifier.AFTER
    assert parse_date("prior to 1900").modifier is DateModifier.BEFORE


def test_between_range():
    d = parse_date("BET 1880 AND 1890")
    assert d.modifier is DateModifier.BETWEEN
    assert d.range_end.year == 1890
    assert d.contains_year(1885)
    assert not d.contains_year(1891)
    assert d.to_geni_format() == "BET 1880 AND 1890"


def test_from_to_range_and_open_ends():
    assert parse_date("FROM 1880 TO 1890").modifier is DateModifier.BETWEEN
    assert parse_date("FROM 1880").modifier is DateModifier.AFTER
    assert parse_date("TO 1890").modifier is DateModifier.BEFORE


def test_season_is_year_precision():
    d = parse_date("spring 1880")
    assert d.year == 1880
    assert d.precision is DatePrecision.YEAR


def test_calendar_suffix_is_ignored():
    d = parse_date("1 JAN 1900 (Julian)")
    assert d.precision is DatePrecision.DAY
    assert d.year == 1900


@pytest.mark.parametrize("raw", [None, "", "   ", "unknown", "JAN"])
def test_unparseable_values_return_none(raw):
    assert parse_date(raw) is None


def test_range_end_required_exactly_for_between():
    with pytest.raises(ValueError):
        DateInfo(year=1900, modifier=DateModifier.BETWEEN)
    with pytest.raises(ValueError):
        DateInfo(year=1900, range_end=DateInfo.from_year(1910))


def test_precision_requires_components():
    with pytest.raises(ValueError):
        DateInfo(year=1900, precision=DatePrecision.DAY)
    with pytest.raises(ValueError):
        DateInfo(year=1900, precision=DatePrecision.MONTH)


def test_precision_ordering():
    day = DateInfo.from_ymd(1885, 3, 1)
    year = DateInfo.from_year(1885)
    assert day.is_more_precise_than(year)
    assert not year.is_more_precise_than(day)
    assert day.coarser_precision(year) is DatePrecision.YEAR
    assert day.truncated(DatePrecision.YEAR) == (1885,)
