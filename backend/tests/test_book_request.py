import pytest

from book_api.book_request import (
    FullBookRequest,
    MalformedBookRequestError,
    decode_full_book_request,
    validate_full_book_request,
)


def test_validate_full_book_request_accepts_valid_input():
    """A complete request has no errors."""
    request = FullBookRequest(title="Valid Book", author="Valid Author", year=1999)

    assert validate_full_book_request(request) == {}


def test_validate_full_book_request_accepts_year_without_upper_bound():
    """Only the lower bound of year is enforced."""
    request = FullBookRequest(title="Far Future", author="Someone", year=1_000_000)

    assert validate_full_book_request(request) == {}


def test_validate_full_book_request_reports_every_missing_field():
    """An empty request fails on all three fields."""
    errors = validate_full_book_request(FullBookRequest())

    assert errors == {
        "title": "title is required",
        "author": "author is required",
        "year": "year must be a positive integer",
    }


@pytest.mark.parametrize(
    ("overrides", "expected_key"),
    [
        ({"title": ""}, "title"),
        ({"author": ""}, "author"),
        ({"year": 0}, "year"),
        ({"year": -5}, "year"),
    ],
)
def test_validate_full_book_request_reports_only_the_invalid_field(overrides, expected_key):
    """Breaking one field reports exactly that field."""
    values = {"title": "Title", "author": "Author", "year": 2020}
    values.update(overrides)

    errors = validate_full_book_request(FullBookRequest(**values))

    assert set(errors) == {expected_key}


def test_decode_full_book_request_ignores_extra_fields():
    """Unknown keys in the body are dropped."""
    request = decode_full_book_request(
        b'{"title": "T", "author": "A", "year": 2000, "id": 7, "isbn": "x"}'
    )

    assert request == FullBookRequest(title="T", author="A", year=2000)


def test_decode_full_book_request_fills_missing_fields_with_zero_values():
    """Missing keys decode to empty strings and zero."""
    request = decode_full_book_request(b"{}")

    assert request == FullBookRequest(title="", author="", year=0)


@pytest.mark.parametrize(
    "raw_body",
    [
        b"{",
        b"",
        b"[]",
        b'"title"',
        b'{"title": 5}',
        b'{"year": "2015"}',
        b'{"year": 2015.5}',
        b'{"year": 9223372036854775808}',
    ],
)
def test_decode_full_book_request_rejects_malformed_bodies(raw_body):
    """Malformed JSON or wrongly typed values fail to decode."""
    with pytest.raises(MalformedBookRequestError):
        decode_full_book_request(raw_body)


@pytest.mark.parametrize(
    "raw_body",
    [
        b"null",
        b'{"title": null, "author": null, "year": null}',
        b'  \n{"title": null}',
    ],
)
def test_decode_full_book_request_reads_null_as_zero_values(raw_body):
    """A null body or null fields decode like missing fields."""
    request = decode_full_book_request(raw_body)

    assert request == FullBookRequest()
    assert set(validate_full_book_request(request)) == {"title", "author", "year"}


def test_decode_full_book_request_keeps_set_fields_next_to_null_ones():
    """Only the null fields fall back to zero values."""
    request = decode_full_book_request(b'{"title": "T", "author": null, "year": 2001}')

    assert request == FullBookRequest(title="T", author="", year=2001)


def test_decode_full_book_request_ignores_data_after_first_value():
    """Only the first JSON value of the body is read."""
    request = decode_full_book_request(
        b'{"title": "T", "author": "A", "year": 2000} trailing {"title": "other"}'
    )

    assert request == FullBookRequest(title="T", author="A", year=2000)
