import pytest

from alcotest.ranges import RANGE_LIST_ERROR, IntSet, format_int_set, parse_int_ranges


def test_parses_mixed_numbers_and_ranges():
    assert parse_int_ranges("4,6-10,19") == {4, 6, 7, 8, 9, 10, 19}


def test_accepts_dotted_ranges():
    assert parse_int_ranges("1..3,7") == {1, 2, 3, 7}


def test_single_element_range():
    assert parse_int_ranges("3..3") == {3}


def test_overlapping_pieces_are_merged():
    assert parse_int_ranges("1-3,2,3-4") == {1, 2, 3, 4}


@pytest.mark.parametrize("text", ["5..3", "9-2", "abc", "", "1,,2", "1..", "..4", "1.5", " 1", "-3"])
def test_rejects_malformed_lists(text):
    with pytest.raises(ValueError) as excinfo:
        parse_int_ranges(text)
    assert str(excinfo.value) == RANGE_LIST_ERROR


def test_iterates_in_ascending_order():
    values = parse_int_ranges("19,4,10-12,0")
    assert isinstance(values, IntSet)
    assert list(values) == [0, 4, 10, 11, 12, 19]


def test_formats_with_braces():
    assert format_int_set(parse_int_ranges("7,1-2")) == "{1, 2, 7}"
    assert str(parse_int_ranges("5")) == "{5}"
    assert format_int_set(IntSet()) == "{}"


@pytest.mark.parametrize("text", ["0", "4,6-10,19", "3-5,1..2,100"])
def test_rendered_set_parses_back_to_the_same_set(text):
    values = parse_int_ranges(text)
    rendered = format_int_set(values)[1:-1].replace(" ", "")
    assert parse_int_ranges(rendered) == values
