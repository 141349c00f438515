"""Attribute schemas for catalog entities."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .errors import ValidationError


class _Attrs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class GroupAttrs(_Attrs):
    name: str = Field(..., min_length=1, max_length=255)
    leader_id: Optional[int] = Field(None, ge=1)
    mentor_id: Optional[int] = Field(None, ge=1)


class CategoryAttrs(_Attrs):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    category_id: Optional[int] = Field(None, ge=1)


class MaterialAttrs(_Attrs):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    file: str = Field(..., min_length=1)
    category_id: Optional[int] = Field(None, ge=1)


class SourcecastAttrs(_Attrs):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    audio: str = Field(..., min_length=1)


SchemaT = TypeVar("SchemaT", bound=_Attrs)


def validate_attrs(schema: Type[SchemaT], attrs: Mapping[str, Any], *, entity: str) -> SchemaT:
    """Validate *attrs* against *schema*.

    Pydantic failures are re-raised as :class:`ValidationError` with one
    ``{"field", "message"}`` entry per offending field.
    """

    try:
        return schema.model_validate(dict(attrs))
    except pydantic.ValidationError as error:
        details = [
            {
                "field": ".".join(str(part) for part in item.get("loc", ())) or "__root__",
                "message": item.get("msg", "invalid value"),
            }
            for item in error.errors()
        ]
        raise ValidationError(entity, details) from error


def provided_fields(model: _Attrs) -> Dict[str, Any]:
    """Return only the fields explicitly supplied by the caller."""

    return model.model_dump(exclude_unset=True)


__all__ = [
    "CategoryAttrs",
    "GroupAttrs",
    "MaterialAttrs",
    "SourcecastAttrs",
    "provided_fields",
    "validate_attrs",
]
