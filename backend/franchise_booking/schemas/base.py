"""
Base schemas with standardized field types for consistent API responses.
"""
from decimal import Decimal
import math
from typing import Any, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic_core import core_schema

T = TypeVar("T")


class StandardizedModel(BaseModel):
    """Base model with standardized JSON encoding"""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)


class Money(Decimal):
    """Money field that always serializes as float"""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def validate_money(value: Any) -> Decimal:
            if isinstance(value, Decimal):
                return value
            if isinstance(value, (int, float, str)):
                return Decimal(str(value))
            raise ValueError(f"Cannot convert {type(value)} to Money")

        return core_schema.no_info_after_validator_function(
            validate_money,
            core_schema.union_schema(
                [
                    core_schema.is_instance_schema(Decimal),
                    core_schema.int_schema(),
                    core_schema.float_schema(),
                    core_schema.str_schema(),
                ]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                float,
                info_arg=False,
                return_schema=core_schema.float_schema(),
            ),
        )


class PaginationMeta(BaseModel):
    """Paging block returned with every list endpoint."""

    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)

    @computed_field(alias="totalPages")  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    model_config = ConfigDict(
        json_schema_extra={"example": {"page": 1, "limit": 20, "total": 42, "totalPages": 3}}
    )


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response for all list endpoints."""

    items: List[T] = Field(description="List of items")
    pagination: PaginationMeta


class ErrorResponse(BaseModel):
    """Error envelope produced by the registered exception handlers."""

    error: str = Field(description="Human-readable error message")
    code: str = Field(description="Stable error kind for programmatic handling")
    details: Any = Field(default=None, description="Structured context for the error")
