"""Response envelopes shared by every endpoint."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire.

    Input accepts either camelCase or snake_case field names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[DataT]):
    """Success envelope: ``{statusCode, data, message, success}``."""

    status_code: int = 200
    data: DataT
    message: str = "Success"
    success: bool = True


class ErrorResponse(CamelModel):
    """Failure envelope: ``{success: false, message, correlationId}``.

    Attributes:
        success: Always False
        message: Client-safe explanation, never a stack trace
        correlation_id: Request tracking ID for debugging
    """

    success: bool = False
    message: str
    correlation_id: Optional[str] = None
