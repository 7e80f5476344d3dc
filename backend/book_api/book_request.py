import json
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
JSON_WHITESPACE = " \t\n\r"


class MalformedBookRequestError(ValueError):
    """The request body could not be decoded into a FullBookRequest."""


class FullBookRequest(BaseModel):
    """Write payload for creating or fully replacing a book.

    Unknown keys are ignored. Missing or null keys keep their zero value so the
    validator can report them. Values of the wrong JSON type fail to decode.
    """

    model_config = ConfigDict(strict=True, extra="ignore")

    title: str = ""
    author: str = ""
    year: int = Field(default=0, ge=INT64_MIN, le=INT64_MAX)

    @field_validator("title", "author", "year", mode="before")
    @classmethod
    def _null_as_zero_value(cls, value: Any, info: ValidationInfo) -> Any:
        """Read JSON null as the field's zero value."""
        if value is None:
            return cls.model_fields[info.field_name].default

        return value


def decode_full_book_request(raw_body: Union[bytes, str]) -> FullBookRequest:
    """Decode the first JSON value of a request body.

    Data after the first value is ignored and a top-level null yields an empty
    request. Raises ``MalformedBookRequestError`` when the body is not a valid payload.
    """
    try:
        text = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
        start = len(text) - len(text.lstrip(JSON_WHITESPACE))
        payload, _end = json.JSONDecoder().raw_decode(text, start)
    except ValueError as error:
        raise MalformedBookRequestError(f"request body is not valid JSON: {error}") from error

    if payload is None:
        return FullBookRequest()

    try:
        return FullBookRequest.model_validate(payload)
    except ValidationError as error:
        raise MalformedBookRequestError("request body does not match FullBookRequest") from error


def validate_full_book_request(request: FullBookRequest) -> dict[str, str]:
    """Return a field -> message map of validation errors, empty when the request is valid."""
    errors: dict[str, str] = {}

    if request.title == "":
        errors["title"] = "title is required"

    if request.author == "":
        errors["author"] = "author is required"

    if request.year < 1:
        errors["year"] = "year must be a positive integer"

    return errors
