"""Local source layout policy models."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator


class SourcePolicy(BaseModel):
    """Where exported key files live and which of them feed the web bundle."""

    multi_access_dir: str = Field(default="vicflora-data", min_length=1)
    multi_access_pattern: str = Field(default="key-*-complete.json", min_length=1)
    dichotomous_dir: str = Field(default="keybase-data", min_length=1)
    bundle_dichotomous_keys: List[str] = Field(
        default_factory=lambda: ["1903", "1906", "1907"],
    )
    bundle_multi_access_keys: List[str] = Field(
        default_factory=lambda: [
            "key-115cc464-6167-4b50-9c3a-72f0bc8ff745-complete.json",
            "key-2aca28ae-4324-47d1-a43f-d20522e72fea-complete.json",
        ],
    )

    @field_validator("bundle_dichotomous_keys", "bundle_multi_access_keys", mode="before")
    @classmethod
    def _normalize_entries(cls, value):
        if value is None:
            return []
        return [str(entry).strip() for entry in value if str(entry).strip()]
