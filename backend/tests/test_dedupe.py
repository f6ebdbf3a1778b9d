"""Tests for exact-duplicate merging."""

from pnl_import.dedupe import dedupe_key, deduplicate
from pnl_import.models import LineItem


def make_item(name, amount, sort_order=0):
    return LineItem(account_name=name, amount=amount, sort_order=sort_order)


def test_same_name_and_amount_is_a_duplicate():
    items = [make_item("Rent", 500, 0), make_item("Rent", 500, 1), make_item("Rent", 600, 2)]

    result = deduplicate(items)

    assert [(i.amount, i.sort_order) for i in result.unique] == [(500, 0), (600, 2)]
    assert [i.sort_order for i in result.duplicates] == [1]


def test_name_match_ignores_case_and_whitespace():
    items = [make_item("Rent", 500), make_item(" RENT ", 500)]

    result = deduplicate(items)

    assert len(result.unique) == 1
    assert len(result.duplicates) == 1


def test_different_names_are_kept():
    items = [make_item("Rent", 500), make_item("Utilities", 500)]

    result = deduplicate(items)

    assert len(result.unique) == 2
    assert result.duplicates == []


def test_empty_input():
    result = deduplicate([])

    assert result.unique == []
    assert result.duplicates == []


def test_dedupe_key():
    assert dedupe_key(make_item("Office Rent", 12.5)) == ("office rent", 12.5)
