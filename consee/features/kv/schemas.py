"""Pydantic schemas for the KV feature."""

from __future__ import annotations

from pydantic import BaseModel, Field


class KeyValue(BaseModel):
    key: str
    value: str = ""


class GetValueResponse(KeyValue):
    """Current value of a key, or of one of its history versions."""


class CreateKeyValueRequest(BaseModel):
    key: str = Field(..., min_length=1)
    value: str = ""
    value_type: str = ""


class UpdateValueRequest(BaseModel):
    value: str = ""


class BatchUpdateRequest(BaseModel):
    kvs: list[KeyValue] = Field(default_factory=list)
