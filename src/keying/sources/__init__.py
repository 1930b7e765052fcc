"""Local key exports: loaders and the web data bundle."""

from .bundle import BundleReport, build_web_bundle
from .io import (
    KeyListing,
    list_multi_access_keys,
    load_key_library,
    load_multi_access_key,
    read_json,
    read_multi_access_payload,
)

__all__ = [
    "BundleReport",
    "build_web_bundle",
    "KeyListing",
    "list_multi_access_keys",
    "load_key_library",
    "load_multi_access_key",
    "read_json",
    "read_multi_access_payload",
]
