"""Identification session policy models."""

from __future__ import annotations

from typing import Tuple

from pydantic import BaseModel, Field, field_validator


class MultiAccessPolicy(BaseModel):
    """Controls candidate narrowing for multi-access keys."""

    wildcard_codes: Tuple[int, ...] = Field(
        default=(2, 4),
        description="Matrix codes that match any selected state for a character.",
    )
    remaining_sample_limit: int = Field(
        default=25,
        ge=1,
        description="Default number of taxa returned when previewing remaining candidates.",
    )
    results_threshold: int = Field(
        default=5,
        ge=1,
        description="Front ends present results once this few candidates remain.",
    )
    result_listing_limit: int = Field(default=15, ge=1)

    @field_validator("wildcard_codes", mode="before")
    @classmethod
    def _normalize_wildcards(cls, value):
        if value is None:
            return ()
        if isinstance(value, int):
            return (value,)
        return tuple(sorted({int(code) for code in value}))


class DichotomousPolicy(BaseModel):
    """Controls dichotomous key navigation."""

    start_key_id: str = Field(default="1903", min_length=1)
    max_stack_depth: int = Field(
        default=32,
        ge=1,
        description="Upper bound on nested key frames; guards against cyclic key links.",
    )

    @field_validator("start_key_id", mode="before")
    @classmethod
    def _coerce_key_id(cls, value):
        return str(value).strip() if value is not None else value
