"""Base model for request bodies."""

from typing import Any

from pydantic import field_validator

from quizhub.models.response import CamelModel


def _is_encodable(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class RequestModel(CamelModel):
    """camelCase request body whose text is valid UTF-8.

    JSON allows escaped lone surrogates such as ``"\\ud800"``, which decode
    to Python strings that cannot be hashed or stored. Such bodies are
    rejected here as validation errors.
    """

    @field_validator("*", mode="after")
    @classmethod
    def text_is_utf8(cls, v: Any) -> Any:
        """Reject strings (or lists of strings) that are not encodable as UTF-8."""
        values = v if isinstance(v, list) else [v]
        for item in values:
            if isinstance(item, str) and not _is_encodable(item):
                raise ValueError("Text contains characters that are not valid UTF-8")
        return v
