"""Settings layers and policy models for keying."""

from .overrides import apply_env_overrides, deep_merge
from .policies import (
    DichotomousPolicy,
    MultiAccessPolicy,
    Policies,
    SourcePolicy,
    load_policies,
)
from .settings import PathsConfig, Settings, get_settings

__all__ = [
    "Settings",
    "PathsConfig",
    "get_settings",
    "Policies",
    "load_policies",
    "MultiAccessPolicy",
    "DichotomousPolicy",
    "SourcePolicy",
    "apply_env_overrides",
    "deep_merge",
]
