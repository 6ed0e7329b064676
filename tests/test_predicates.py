"""Tests for typed predicate fragments."""

from datetime import datetime
from decimal import Decimal

import pytest

from scoped_query.plan.predicates import (
    ColumnRef,
    Conjunction,
    Constant,
    Disjunction,
    Equality,
    FreeText,
    Membership,
    Predicate,
    Range,
    TypeClass,
    build_membership,
    false_predicate,
    parse_integer,
    placeholder_indices,
    true_predicate,
)


def test_numeric_membership():
    """Test integer columns get an integer array comparison."""
    predicate = build_membership("hotel_id", TypeClass.NUMERIC, [3, 7])

    assert predicate.sql == "hotel_id = ANY($1::int[])"
    assert list(predicate.params) == [[3, 7]]
    assert predicate.next_param_index == 2


def test_text_membership_casts_column():
    """Test text columns compare as text against stringified ids."""
    predicate = build_membership("hotel_ref", TypeClass.TEXT, [3, 7])

    assert predicate.sql == "hotel_ref::text = ANY($1::text[])"
    assert list(predicate.params) == [["3", "7"]]


def test_unknown_type_treated_as_text():
    """Test a missing type class falls back to text comparison."""
    predicate = build_membership("hotel_ref", None, ["a1"])

    assert predicate.sql == "hotel_ref::text = ANY($1::text[])"
    assert list(predicate.params) == [["a1"]]


def test_numeric_membership_drops_non_integers():
    """Test only integers reach a numeric comparison."""
    predicate = build_membership(
        "hotel_id", TypeClass.NUMERIC, [3, "7", "abc", None, 4.0, 2.5, True, " 12 "]
    )

    assert list(predicate.params) == [[3, 7, 4, 12]]
    for value in predicate.params[0]:
        assert type(value) is int


def test_numeric_membership_all_invalid_is_false():
    """Test filtering every id away gives FALSE, not a text fallback."""
    predicate = build_membership("hotel_id", TypeClass.NUMERIC, ["abc", "x1"])

    assert predicate.sql == "FALSE"
    assert predicate.params == ()


@pytest.mark.parametrize("ids", [[], None, [None]])
def test_empty_ids_give_false(ids):
    """Test nothing to match yields FALSE with no parameters."""
    predicate = build_membership("hotel_id", TypeClass.NUMERIC, ids)

    assert predicate.is_false()
    assert predicate.params == ()


def test_missing_column_gives_false():
    """Test an unresolved column yields FALSE with no parameters."""
    predicate = build_membership(None, TypeClass.NUMERIC, [3, 7])

    assert predicate == false_predicate()
    assert build_membership(None, TypeClass.NUMERIC, [3, 7]) == predicate


def test_unsafe_column_gives_false():
    """Test a name that fails the identifier rule is never rendered."""
    predicate = build_membership("hotel_id; --", TypeClass.TEXT, [3])

    assert predicate.is_false()
    assert predicate.params == ()


def test_large_ids_use_bigint_array():
    """Test ids beyond the int4 range switch the array cast."""
    predicate = build_membership("hotel_id", TypeClass.NUMERIC, [3, 3000000000])

    assert predicate.sql == "hotel_id = ANY($1::bigint[])"


def test_membership_start_index_and_qualifier():
    """Test placeholder numbering and table alias."""
    predicate = build_membership(ColumnRef("hotelId", "u"), TypeClass.NUMERIC, [1], 4)

    assert predicate.sql == 'u."hotelId" = ANY($4::int[])'
    assert predicate.start_index == 4
    assert predicate.next_param_index == 5


def test_membership_condition_compiles_like_builder():
    """Test the Membership condition delegates to build_membership."""
    condition = Membership(ColumnRef("hotel_id"), (3, 7), TypeClass.NUMERIC)

    assert condition.compile(2) == build_membership("hotel_id", TypeClass.NUMERIC, [3, 7], 2)


@pytest.mark.parametrize(
    "value,expected",
    [(5, 5), ("5", 5), (" -3 ", -3), (4.0, 4), (Decimal("8"), 8), (2.5, None), ("5a", None), (True, None), (None, None)],
)
def test_parse_integer(value, expected):
    """Test integer parsing accepts only integral values."""
    assert parse_integer(value) == expected


def test_renumber_shifts_placeholders():
    """Test renumbering keeps parameters and shifts every placeholder."""
    predicate = Predicate("a = $1 AND b = $2 AND c = $1", ("x", "y"), 1)

    shifted = predicate.renumber(5)

    assert shifted.sql == "a = $5 AND b = $6 AND c = $5"
    assert shifted.params == ("x", "y")
    assert shifted.next_param_index == 7


def test_and_combination():
    """Test AND combination and its TRUE/FALSE simplifications."""
    left = Predicate("a = $1", (1,), 1)
    right = Predicate("b = $1", (2,), 1)

    combined = left.and_(right)
    assert combined.sql == "(a = $1) AND (b = $2)"
    assert combined.params == (1, 2)

    assert true_predicate().and_(right) == right
    assert left.and_(true_predicate()) == left
    assert left.and_(false_predicate()).is_false()
    assert false_predicate().and_(right).is_false()


def test_or_combination():
    """Test OR combination and its TRUE/FALSE simplifications."""
    left = Predicate("a = $1", (1,), 1)
    right = Predicate("b = $1", (2,), 1)

    combined = left.or_(right)
    assert combined.sql == "(a = $1 OR b = $2)"
    assert combined.params == (1, 2)

    assert false_predicate().or_(right) == right
    assert left.or_(false_predicate()) == left
    assert left.or_(true_predicate()).is_true()


def test_numeric_equality():
    """Test numeric equality binds an int or fails closed."""
    assert Equality(ColumnRef("manager_id"), "12", TypeClass.NUMERIC).compile() == Predicate(
        "manager_id = $1", (12,), 1
    )
    assert Equality(ColumnRef("manager_id"), "abc", TypeClass.NUMERIC).compile().is_false()


def test_text_equality_casts_column():
    """Test text equality compares the column as text."""
    predicate = Equality(ColumnRef("hotel_ref"), 3, TypeClass.TEXT).compile(2)

    assert predicate.sql == "hotel_ref::text = $2"
    assert predicate.params == ("3",)


def test_case_insensitive_equality():
    """Test case-insensitive equality lower-cases both sides."""
    predicate = Equality(ColumnRef("status", "t"), "Open", case_insensitive=True).compile()

    assert predicate.sql == "LOWER(t.status) = LOWER($1)"
    assert predicate.params == ("Open",)


def test_equality_with_none_is_null_check():
    """Test a None value becomes IS NULL without parameters."""
    predicate = Equality(ColumnRef("branch"), None).compile(3)

    assert predicate.sql == "branch IS NULL"
    assert predicate.params == ()
    assert predicate.next_param_index == 3


def test_equality_on_missing_column_is_false():
    """Test equality against an unresolved column fails closed."""
    assert Equality(ColumnRef(None), "North").compile().is_false()


def test_range_variants():
    """Test both-bound, lower-bound, upper-bound and unbounded ranges."""
    start = datetime(2024, 1, 1)
    end = datetime(2024, 1, 31, 23, 59, 59)
    column = ColumnRef("created_at")

    both = Range(column, start, end).compile(2)
    assert both.sql == "created_at BETWEEN $2 AND $3"
    assert both.params == (start, end)

    assert Range(column, start, None).compile().sql == "created_at >= $1"
    assert Range(column, None, end).compile().sql == "created_at <= $1"
    assert Range(column).compile().is_true()


def test_free_text_shares_one_parameter():
    """Test every searched column reuses the same pattern parameter."""
    predicate = FreeText((ColumnRef("title"), ColumnRef("description")), " heat ").compile(4)

    assert predicate.sql == (
        "(title::text ILIKE $4 ESCAPE '\\' OR description::text ILIKE $4 ESCAPE '\\')"
    )
    assert predicate.params == ("%heat%",)
    assert predicate.next_param_index == 5


def test_free_text_escapes_wildcards():
    """Test LIKE wildcards in the term match literally."""
    predicate = FreeText((ColumnRef("title"),), "50%_off").compile()

    assert predicate.params == ("%50\\%\\_off%",)


def test_free_text_edge_cases():
    """Test blank terms match everything and no usable columns match nothing."""
    assert FreeText((ColumnRef("title"),), "  ").compile().is_true()
    assert FreeText((ColumnRef("bad name"),), "leak").compile().is_false()


def test_conjunction_numbers_parts_in_order():
    """Test conjunction placeholders follow part order."""
    condition = Conjunction(
        (
            Equality(ColumnRef("a"), 1),
            Constant(True),
            Range(ColumnRef("b"), 1, 2),
        )
    )

    predicate = condition.compile(3)

    assert predicate.sql == "(a = $3) AND (b BETWEEN $4 AND $5)"
    assert predicate.params == (1, 1, 2)


def test_conjunction_with_false_part_is_false():
    """Test one FALSE part makes the conjunction FALSE."""
    condition = Conjunction((Equality(ColumnRef("a"), 1), Constant(False)))

    predicate = condition.compile()

    assert predicate.is_false()
    assert predicate.params == ()


def test_disjunction():
    """Test disjunction skips FALSE parts."""
    condition = Disjunction(
        (Constant(False), Equality(ColumnRef("a"), 1), Equality(ColumnRef("b"), 2))
    )

    predicate = condition.compile()

    assert predicate.sql == "(a = $1 OR b = $2)"
    assert Disjunction(()).compile().is_false()


def test_placeholder_indices():
    """Test placeholder numbers are reported once, in order of first use."""
    assert placeholder_indices("a = $1 OR b = $1 AND c = $2 LIMIT $10") == [1, 2, 10]
    assert placeholder_indices("TRUE") == []
