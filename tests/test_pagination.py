import pytest

from errors import ValidationError
from pagination import paginate, pagination_meta, parse_pagination


def test_defaults():
    assert parse_pagination() == (1, 10, 0)


def test_skip_is_derived_from_page_and_limit():
    assert parse_pagination(3, 20) == (3, 20, 40)


@pytest.mark.parametrize("page, limit", [(0, 10), (-1, 10), (1, 0), (1, 101)])
def test_out_of_range_values_are_rejected(page, limit):
    with pytest.raises(ValidationError):
        parse_pagination(page, limit)


def test_last_page_of_95_items():
    meta = pagination_meta(10, 10, 95)
    assert meta["totalPages"] == 10
    assert meta["hasNextPage"] is False
    assert meta["hasPrevPage"] is True


def test_first_page_has_no_previous():
    meta = pagination_meta(1, 10, 95)
    assert meta == {
        "currentPage": 1,
        "totalPages": 10,
        "totalItems": 95,
        "itemsPerPage": 10,
        "hasNextPage": True,
        "hasPrevPage": False,
    }


def test_empty_collection():
    items, meta = paginate([], 1, 10)
    assert items == []
    assert meta["totalPages"] == 0
    assert meta["hasNextPage"] is False


def test_paginate_slices_the_requested_page():
    items, meta = paginate(list(range(95)), 10, 10)
    assert items == [90, 91, 92, 93, 94]
    assert meta["totalItems"] == 95
