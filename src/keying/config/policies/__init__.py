"""Policy models governing identification sessions and key sources."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator

from ..overrides import apply_env_overrides, read_yaml_mapping
from .sessions import DichotomousPolicy, MultiAccessPolicy
from .sources import SourcePolicy

POLICY_ENV_PREFIX = "KEYING_POLICY__"


class Policies(BaseModel):
    """Root policy container; each section maps to one YAML block."""

    policy_version: str = Field(default="2025-10-01", min_length=1)
    multi_access: MultiAccessPolicy = Field(default_factory=MultiAccessPolicy)
    dichotomous: DichotomousPolicy = Field(default_factory=DichotomousPolicy)
    sources: SourcePolicy = Field(default_factory=SourcePolicy)

    @field_validator("policy_version", mode="before")
    @classmethod
    def _stringify_version(cls, value: Any) -> Any:
        # YAML reads an unquoted 2025-10-01 as a date
        return str(value) if value is not None else value

    @classmethod
    def sections(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields)


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any] | None = None) -> Policies:
    """Build :class:`Policies` from a mapping or YAML file, then ``KEYING_POLICY__`` variables.

    ``KEYING_POLICY__MULTI_ACCESS__WILDCARD_CODES='[2, 4]'`` sets
    ``multi_access.wildcard_codes``; values are JSON-decoded when they parse.
    """

    if source is None:
        raw: Mapping[str, Any] = {}
    elif isinstance(source, Mapping):
        raw = source
    else:
        raw = read_yaml_mapping(Path(source), required=True)
    return Policies.model_validate(apply_env_overrides(raw, POLICY_ENV_PREFIX))


__all__ = [
    "POLICY_ENV_PREFIX",
    "Policies",
    "load_policies",
    "MultiAccessPolicy",
    "DichotomousPolicy",
    "SourcePolicy",
]
