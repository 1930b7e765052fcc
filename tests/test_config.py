from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from keying.config.overrides import apply_env_overrides, deep_merge, read_yaml_mapping
from keying.config.policies import MultiAccessPolicy, load_policies
from keying.config.settings import PROJECT_ROOT, Settings


def _write_yaml(path: Path, payload: dict) -> Path:
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return path


def test_load_policies_defaults() -> None:
    policies = load_policies()

    assert policies.multi_access.wildcard_codes == (2, 4)
    assert policies.multi_access.results_threshold == 5
    assert policies.dichotomous.start_key_id == "1903"
    assert policies.sources.multi_access_pattern == "key-*-complete.json"


def test_policy_env_overrides_are_json_decoded(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KEYING_POLICY__MULTI_ACCESS__WILDCARD_CODES", "[4, 2, 2]")
    monkeypatch.setenv("KEYING_POLICY__DICHOTOMOUS__START_KEY_ID", "1906")

    policies = load_policies({})

    assert policies.multi_access.wildcard_codes == (2, 4)
    assert policies.dichotomous.start_key_id == "1906"


def test_load_policies_from_yaml_file(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "policies.yaml", {"dichotomous": {"max_stack_depth": 4}})

    assert load_policies(path).dichotomous.max_stack_depth == 4
    with pytest.raises(FileNotFoundError):
        load_policies(tmp_path / "absent.yaml")


def test_wildcard_codes_accept_scalars_and_empty() -> None:
    assert MultiAccessPolicy(wildcard_codes=4).wildcard_codes == (4,)
    assert MultiAccessPolicy(wildcard_codes=None).wildcard_codes == ()


def test_environment_yaml_overrides_default(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "default.yaml",
        {"log_level": "INFO", "multi_access": {"results_threshold": 5, "remaining_sample_limit": 9}},
    )
    _write_yaml(tmp_path / "testing.yaml", {"log_level": "DEBUG", "multi_access": {"results_threshold": 2}})

    settings = Settings(config_dir=tmp_path, environment="testing")

    assert settings.environment == "testing"
    assert settings.log_level == "DEBUG"
    assert settings.policies.multi_access.results_threshold == 2
    assert settings.policies.multi_access.remaining_sample_limit == 9


def test_explicit_policy_overrides_merge_with_yaml(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "default.yaml", {"dichotomous": {"start_key_id": "1906", "max_stack_depth": 8}})

    settings = Settings(config_dir=tmp_path, policies={"dichotomous": {"start_key_id": "1907"}})

    assert settings.policies.dichotomous.start_key_id == "1907"
    assert settings.policies.dichotomous.max_stack_depth == 8


def test_settings_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KEYING_SETTINGS__LOG_LEVEL", "WARNING")

    settings = Settings(config_dir=tmp_path)

    assert settings.log_level == "WARNING"


def test_relative_paths_are_anchored_to_project_root(tmp_path: Path) -> None:
    settings = Settings(config_dir=tmp_path, paths={"data_dir": "fixtures", "logs_dir": str(tmp_path / "logs")})

    assert settings.paths.data_dir == PROJECT_ROOT / "fixtures"
    assert settings.log_file == tmp_path / "logs" / "keying.log"
    assert settings.multi_access_dir == PROJECT_ROOT / "fixtures" / "vicflora-data"
    assert settings.dichotomous_dir == PROJECT_ROOT / "fixtures" / "keybase-data"


def test_create_dirs_materialises_paths(tmp_path: Path) -> None:
    paths = {name: str(tmp_path / name) for name in ("data", "output", "logs")}

    Settings(
        config_dir=tmp_path,
        create_dirs=True,
        paths={"data_dir": paths["data"], "output_dir": paths["output"], "logs_dir": paths["logs"]},
    )

    assert all(Path(path).is_dir() for path in paths.values())


def test_deep_merge_merges_nested_mappings_only() -> None:
    base = {"paths": {"data_dir": "a", "logs_dir": "b"}, "wildcards": [2, 4]}

    merged = deep_merge(base, {"paths": {"data_dir": "c"}, "wildcards": [4]})

    assert merged == {"paths": {"data_dir": "c", "logs_dir": "b"}, "wildcards": [4]}
    assert base["paths"]["data_dir"] == "a"


def test_env_override_cannot_descend_through_scalar(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KEYING_POLICY__POLICY_VERSION__NESTED", "1")

    with pytest.raises(ValueError):
        apply_env_overrides({"policy_version": "2025-10-01"}, "KEYING_POLICY__")


def test_read_yaml_mapping_rejects_lists(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")

    assert read_yaml_mapping(tmp_path / "absent.yaml") == {}
    with pytest.raises(ValueError):
        read_yaml_mapping(path)


def test_unknown_log_level_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        Settings(config_dir=tmp_path, log_level="chatty")
