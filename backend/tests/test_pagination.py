import pytest

from dashboard.errors import ValidationError
from dashboard.pagination import PageRequest, page_count, parse_page_request


def test_defaults_when_nothing_given():
    req = parse_page_request({})
    assert req == PageRequest(page=1, per_page=10, sort=None, filters={})
    assert req.offset == 0
    assert req.limit == 10


@pytest.mark.parametrize("bad", ["abc", "-1", "0", "", "  ", "1.5", "2e3"])
def test_malformed_values_fall_back(bad):
    req = parse_page_request({"page": bad, "per_page": bad})
    assert req.page == 1
    assert req.per_page == 10


def test_valid_values_and_offset():
    req = parse_page_request({"page": "3", "per_page": "25", "sort": "name.desc"})
    assert (req.page, req.per_page, req.sort) == (3, 25, "name.desc")
    assert req.offset == 50


def test_per_page_clamped_to_maximum():
    assert parse_page_request({"per_page": "5000"}).per_page == 100
    assert parse_page_request({"per_page": "5000"}, max_per_page=20).per_page == 20


def test_custom_default_per_page():
    assert parse_page_request({"per_page": "nope"}, default_per_page=15).per_page == 15


def test_repeated_keys_use_first_value_and_numbers_are_accepted():
    req = parse_page_request({"page": ["4", "9"], "per_page": 20})
    assert req.page == 4
    assert req.per_page == 20


def test_unknown_keys_ignored_and_filters_collected():
    raw = {"page": "2", "evil": "DROP TABLE", "name": [" intro "], "status": "", "active": "true"}
    req = parse_page_request(raw, filter_keys=("name", "status", "active"))
    assert req.filters == {"name": "intro", "active": "true"}
    assert "evil" not in req.cache_key("courses")


def test_mapping_value_is_a_schema_mismatch():
    with pytest.raises(ValidationError) as exc:
        parse_page_request({"page": {"nested": "1"}})
    assert "page" in exc.value.message


def test_cache_key_depends_on_query_shape():
    a = parse_page_request({"page": "1", "name": "x"}, filter_keys=("name",))
    b = parse_page_request({"page": "2", "name": "x"}, filter_keys=("name",))
    assert a.cache_key("courses") != b.cache_key("courses")
    assert a.cache_key("courses") == parse_page_request({"name": "x"}, filter_keys=("name",)).cache_key("courses")


@pytest.mark.parametrize(
    "total,limit,expected",
    [(0, 10, 0), (10, 10, 1), (11, 10, 2), (25, 10, 3), (1, 1, 1), (99, 100, 1)],
)
def test_page_count(total, limit, expected):
    assert page_count(total, limit) == expected


def test_page_count_rejects_degenerate_limit():
    with pytest.raises(ValueError):
        page_count(10, 0)


@pytest.mark.parametrize("bad", ["1_0", "٣", "0x10", "+", "1 0"])
def test_integer_forms_beyond_plain_digits_fall_back(bad):
    req = parse_page_request({"page": bad, "per_page": bad})
    assert (req.page, req.per_page) == (1, 10)


def test_signed_and_padded_digits_are_accepted():
    req = parse_page_request({"page": " +2 ", "per_page": "05"})
    assert (req.page, req.per_page) == (2, 5)


def test_page_with_overflowing_offset_falls_back():
    assert parse_page_request({"page": "99999999999999999999"}).page == 1
    assert parse_page_request({"page": "9" * 5000}).page == 1
    # the largest page whose offset still fits is kept
    last = (2**63 - 1) // 100 + 1
    req = parse_page_request({"page": str(last), "per_page": "100"})
    assert req.page == last
    assert req.offset <= 2**63 - 1
    assert parse_page_request({"page": str(last + 1), "per_page": "100"}).page == 1
