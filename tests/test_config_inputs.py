import pytest

from instance_config_cli.cli_shared import DEFAULT_LABELS, DEFAULT_TIMEOUT_SECONDS, QuickstartConfig
from instance_config_cli.config_inputs import (
    ConfigInputError,
    InvalidConfigIdError,
    InvalidLabelError,
    InvalidTimeoutError,
    parse_labels,
    resolve_quickstart_config,
)


def _env_lookup(env: dict[str, str]):
    def inner(*names: str):
        for n in names:
            v = (env.get(n) or "").strip()
            if v:
                return v
        return None

    return inner


def _resolve(env: dict[str, str] | None = None, **overrides):
    kwargs = {
        "project": None,
        "base_config": None,
        "config_id": None,
        "display_name": None,
        "labels": None,
        "timeout": None,
        "env_or_none": _env_lookup(env or {}),
    }
    kwargs.update(overrides)
    return resolve_quickstart_config(**kwargs)


def test_resolve_uses_quickstart_defaults_without_flags_or_env():
    cfg = _resolve()

    assert cfg.project_path == "projects/my-project"
    assert cfg.base_config_path == "projects/my-project/instanceConfigs/base-config-with-optional-replicas"
    assert cfg.custom_config_path == "projects/my-project/instanceConfigs/custom-quickstart-py"
    assert cfg.labels == DEFAULT_LABELS
    assert cfg.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
    assert cfg.emulator_host == ""


def test_resolved_labels_are_read_only():
    source = ["team=db"]
    cfg = _resolve(labels=source)

    with pytest.raises(TypeError):
        cfg.labels["team"] = "other"
    assert cfg.labels == {"team": "db"}


def test_config_labels_are_copied_from_the_caller_mapping():
    source = {"team": "db"}
    cfg = QuickstartConfig(labels=source)
    source["team"] = "changed"

    assert cfg.labels == {"team": "db"}


def test_resolve_prefers_flags_over_env():
    env = {
        "INSTANCE_CONFIG_PROJECT": "env-project",
        "INSTANCE_CONFIG_ID": "custom-env",
        "INSTANCE_CONFIG_LABELS": "team=env",
        "INSTANCE_CONFIG_TIMEOUT": "5",
    }

    cfg = _resolve(env, project="flag-project", config_id="custom-flag", labels=["team=flag"], timeout="12.5")

    assert cfg.project == "flag-project"
    assert cfg.config_id == "custom-flag"
    assert cfg.labels == {"team": "flag"}
    assert cfg.timeout_seconds == 12.5


def test_resolve_falls_back_to_google_cloud_project_and_env_labels():
    env = {
        "GOOGLE_CLOUD_PROJECT": "gcp-project",
        "INSTANCE_CONFIG_LABELS": "a=1, b=2",
        "SPANNER_EMULATOR_HOST": "localhost:9010",
    }

    cfg = _resolve(env)

    assert cfg.project == "gcp-project"
    assert cfg.labels == {"a": "1", "b": "2"}
    assert cfg.emulator_host == "localhost:9010"


def test_resolve_rejects_config_id_without_custom_prefix():
    with pytest.raises(InvalidConfigIdError, match="must start with 'custom-'"):
        _resolve(config_id="quickstart-py")


def test_resolve_rejects_bare_custom_prefix():
    with pytest.raises(ConfigInputError):
        _resolve(config_id="custom-")


@pytest.mark.parametrize("raw", ["0", "-3", "soon"])
def test_resolve_rejects_bad_timeouts(raw):
    with pytest.raises(InvalidTimeoutError):
        _resolve(timeout=raw)


def test_parse_labels_accepts_repeated_and_comma_separated_entries():
    assert parse_labels(["env=dev,tier=gold", "env=prod", "empty="]) == {
        "env": "prod",
        "tier": "gold",
        "empty": "",
    }


def test_parse_labels_rejects_entries_without_equals():
    with pytest.raises(InvalidLabelError, match="expected KEY=VALUE"):
        parse_labels(["updated"])


def test_operations_filter_targets_create_metadata_for_custom_config():
    cfg = _resolve(config_id="custom-abc")

    assert cfg.operations_filter == (
        "(metadata.@type=type.googleapis.com/google.spanner.admin.instance.v1.CreateInstanceConfigMetadata) AND "
        "(metadata.instance_config.name:custom-abc)"
    )
