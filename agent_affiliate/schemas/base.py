"""
Base Schema Classes for Pydantic Models

This module provides base classes that handle common patterns like camelCase
JSON keys and ORM reads, ensuring consistency across all response schemas.

RULE: All response schemas inherit from BaseResponseSchema and are wrapped in
ApiResponse, so every success body is {"success": true, "data": {...}}.
"""

from typing import Generic, TypeVar
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


DataT = TypeVar("DataT")


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas.

    Features:
    - camelCase keys in JSON (walletAddress, trackingShortUrl, ...)
    - Enables from_attributes for ORM compatibility
    - Population by field name inside the service layer

    Usage:
        class LinkSummary(BaseResponseSchema):
            id: UUID
            merchant_name: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Extra fields are ignored (forward compatibility with network payloads).
    """
    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
    )


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope."""
    success: bool = True
    data: DataT


class ErrorResponse(BaseModel):
    """Failure envelope, rendered by the exception handlers in main.py."""
    success: bool = False
    error: str

