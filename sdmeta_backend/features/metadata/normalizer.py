"""
Canonical metadata schema.

Every parser feeds its partial output through ``normalize_metadata``. Numeric
fields are coerced from their string forms, unknown keys pass through
untouched, and any violation discards the whole record (fail-closed).
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ...shared import get_logger
from ...utils import to_float, to_int

logger = get_logger(__name__)

NormalizeMode = Literal["strict"]


def _coerce_int(value: Any) -> Any:
    if value is None or value == "":
        return None
    coerced = to_int(value)
    if coerced is None:
        raise ValueError(f"not an integer: {value!r}")
    return coerced


def _coerce_float(value: Any) -> Any:
    if value is None or value == "":
        return None
    coerced = to_float(value)
    if coerced is None:
        raise ValueError(f"not a number: {value!r}")
    return coerced


class Resource(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    name: str
    weight: Optional[float] = None
    hash: Optional[str] = None

    @field_validator("weight", mode="before")
    @classmethod
    def _weight(cls, value: Any) -> Any:
        return _coerce_float(value)

    @field_validator("hash", mode="before")
    @classmethod
    def _hash(cls, value: Any) -> Any:
        return None if value is None else str(value)


class ExtraMetadata(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    remix_of_id: Optional[int] = Field(default=None, alias="remixOfId")

    @field_validator("remix_of_id", mode="before")
    @classmethod
    def _remix_of_id(cls, value: Any) -> Any:
        return _coerce_int(value)


class CanonicalMetadata(BaseModel):
    """One record shape for every dialect; unknown top-level keys are kept verbatim."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    prompt: Optional[str] = None
    negative_prompt: Optional[str] = Field(default=None, alias="negativePrompt")
    cfg_scale: Optional[float] = Field(default=None, alias="cfgScale")
    steps: Optional[int] = None
    sampler: Optional[str] = None
    seed: Optional[int] = None
    clip_skip: Optional[int] = Field(default=None, alias="clipSkip")
    hashes: Optional[Dict[str, str]] = None
    resources: Optional[List[Resource]] = None
    comfy: Optional[Union[str, Dict[str, Any]]] = None
    external: Optional[Any] = None
    extra: Optional[ExtraMetadata] = None

    @field_validator("steps", "seed", "clip_skip", mode="before")
    @classmethod
    def _ints(cls, value: Any) -> Any:
        return _coerce_int(value)

    @field_validator("cfg_scale", mode="before")
    @classmethod
    def _floats(cls, value: Any) -> Any:
        return _coerce_float(value)

    @field_validator("sampler", mode="before")
    @classmethod
    def _sampler(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("hashes", mode="before")
    @classmethod
    def _hashes(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items() if v is not None}
        return value


def validate_metadata(partial: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate and coerce a partial record.

    Raises:
        pydantic.ValidationError: the record cannot be coerced into the schema.
    """
    model = CanonicalMetadata.model_validate(dict(partial))
    record = model.model_dump(by_alias=True, exclude_none=True)
    # exclude_none applies to declared fields only; passthrough keys keep None
    record.update(model.model_extra or {})
    return record


def normalize_metadata(partial: Any, mode: NormalizeMode = "strict") -> Dict[str, Any]:
    """Canonical record for ``partial``, or ``{}`` when it does not validate."""
    if mode != "strict":
        raise ValueError(f"Unsupported normalization mode: {mode!r}")
    if not isinstance(partial, Mapping):
        return {}
    try:
        return validate_metadata(partial)
    except (ValidationError, TypeError, ValueError) as exc:
        logger.warning("Discarding metadata that failed validation: %s", exc)
        return {}
