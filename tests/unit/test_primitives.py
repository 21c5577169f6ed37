from __future__ import annotations

import math

import pytest

from evaldash.grid.primitives import (
    cell_text,
    ensure_grid,
    is_blank_row,
    is_plausible_name,
    parse_amount,
    parse_number,
    parse_percent,
    parse_rank_token,
    row_cell,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("¥1,234,567", 1234567),
        ("￥1,234,567", 1234567),
        ("", 0),
        (None, 0),
        (1234567, 1234567),
        (1234567.0, 1234567),
        ("▲12,000", -12000),
        ("(500)", -500),
        ("-¥1,000", -1000),
        ("１，２３４", 1234),
        ("abc", 0),
        ("12.5", 12.5),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


def test_parse_amount_returns_int_for_integral_values():
    assert isinstance(parse_amount("¥3,000"), int)
    assert isinstance(parse_amount(3000.0), int)


def test_parse_amount_nan_is_zero():
    assert parse_amount(math.nan) == 0


def test_parse_percent_string_is_points():
    assert parse_percent("38.0%") == 38.0
    assert parse_percent("38") == 38.0
    assert parse_percent("３８％") == 38.0


def test_parse_percent_number_is_fraction():
    assert parse_percent(0.21) == pytest.approx(21.0)
    assert parse_percent(0.21, fraction_numbers=False) == pytest.approx(0.21)


def test_parse_percent_garbage_is_zero():
    assert parse_percent("n/a") == 0.0
    assert parse_percent(None) == 0.0


@pytest.mark.parametrize(
    "value,expected",
    [("1", 1), ("1位", 1), ("１位", 1), (3, 3), (2.0, 2), ("", 0), ("-", 0), ("順位", 0), (0, 0), (None, 0)],
)
def test_parse_rank_token(value, expected):
    assert parse_rank_token(value) == expected


@pytest.mark.parametrize("value", ["山田太郎", "Taro Yamada", "李 明"])
def test_plausible_names(value):
    assert is_plausible_name(value) is True


@pytest.mark.parametrize("value", ["", None, "山", "1234", "¥1,000", "38.0%", "合計", "氏名", "東京", "---", 12])
def test_implausible_names(value):
    assert is_plausible_name(value) is False


def test_parse_number():
    assert parse_number("1,200") == 1200.0
    assert parse_number(7) == 7.0
    assert parse_number("七") is None
    assert parse_number("") is None


def test_cell_text_and_row_cell():
    assert cell_text(3.0) == "3"
    assert cell_text("  x ") == "x"
    assert cell_text(None) == ""
    assert row_cell(["a"], 5) is None
    assert row_cell(["a"], None) is None
    assert row_cell(None, 0) is None


def test_is_blank_row():
    assert is_blank_row([None, "", "  "])
    assert is_blank_row([])
    assert not is_blank_row([None, 0])


def test_ensure_grid_rejects_non_grids():
    with pytest.raises(TypeError):
        ensure_grid("not a grid")
    with pytest.raises(TypeError):
        ensure_grid([["ok"], 5])
    ensure_grid([])
    ensure_grid([["a", 1], [None]])
