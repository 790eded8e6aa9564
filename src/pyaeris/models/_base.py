"""Base model for pyaeris wire types.

Every upstream-facing model inherits from :class:`AerisBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase payload keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None``, blank
  strings and non-finite floats so the field default is used.
* Frozen instances: callers receive immutable snapshots.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class AerisBaseModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if isinstance(value, float) and not math.isfinite(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip placeholder values before field validation."""
        if not isinstance(values, dict):
            return values
        return AerisBaseModel._clean_dict(values)
