from __future__ import annotations

from typing import Callable, Sequence

from .cli_shared import (
    CUSTOM_CONFIG_PREFIX,
    DEFAULT_BASE_CONFIG,
    DEFAULT_CONFIG_ID,
    DEFAULT_DISPLAY_NAME,
    DEFAULT_LABELS,
    DEFAULT_PROJECT,
    DEFAULT_TIMEOUT_SECONDS,
    GOOGLE_CLOUD_PROJECT,
    INSTANCE_CONFIG_BASE,
    INSTANCE_CONFIG_DISPLAY_NAME,
    INSTANCE_CONFIG_ID,
    INSTANCE_CONFIG_LABELS,
    INSTANCE_CONFIG_PROJECT,
    INSTANCE_CONFIG_TIMEOUT,
    SPANNER_EMULATOR_HOST,
    QuickstartConfig,
)


class ConfigInputError(ValueError):
    """Raised when CLI config inputs are missing or malformed."""


class InvalidLabelError(ConfigInputError):
    """Raised when a label is not in KEY=VALUE form."""


class InvalidConfigIdError(ConfigInputError):
    """Raised when a custom config id lacks the mandatory prefix."""


class InvalidTimeoutError(ConfigInputError):
    """Raised when the deadline is not a positive number of seconds."""


def parse_labels(entries: Sequence[str]) -> dict[str, str]:
    """Parse KEY=VALUE entries; each entry may itself be comma separated."""

    labels: dict[str, str] = {}
    for entry in entries:
        for part in str(entry or "").split(","):
            item = part.strip()
            if not item:
                continue
            key, sep, value = item.partition("=")
            key = key.strip()
            if not sep or not key:
                raise InvalidLabelError(f"invalid label {item!r}: expected KEY=VALUE")
            labels[key] = value.strip()
    return labels


def _parse_timeout(raw: str | float | None) -> float:
    if raw is None or str(raw).strip() == "":
        return DEFAULT_TIMEOUT_SECONDS
    try:
        val = float(raw)
    except (TypeError, ValueError) as e:
        raise InvalidTimeoutError(f"invalid timeout {raw!r}: {e}") from e
    if val <= 0:
        raise InvalidTimeoutError(f"invalid timeout {raw!r}: must be greater than zero")
    return val


def resolve_quickstart_config(
    *,
    project: str | None,
    base_config: str | None,
    config_id: str | None,
    display_name: str | None,
    labels: Sequence[str] | None,
    timeout: str | float | None,
    env_or_none: Callable[..., str | None],
    pretty: bool = True,
    quiet: bool = False,
) -> QuickstartConfig:
    """Resolve flags over env over built-in defaults."""

    resolved_project = (
        project or env_or_none(INSTANCE_CONFIG_PROJECT, GOOGLE_CLOUD_PROJECT) or DEFAULT_PROJECT
    ).strip()
    resolved_base = (base_config or env_or_none(INSTANCE_CONFIG_BASE) or DEFAULT_BASE_CONFIG).strip()
    resolved_id = (config_id or env_or_none(INSTANCE_CONFIG_ID) or DEFAULT_CONFIG_ID).strip()
    if not resolved_id.startswith(CUSTOM_CONFIG_PREFIX) or resolved_id == CUSTOM_CONFIG_PREFIX:
        raise InvalidConfigIdError(
            f"custom config id must start with {CUSTOM_CONFIG_PREFIX!r}; got {resolved_id!r}"
        )
    resolved_display = (
        display_name or env_or_none(INSTANCE_CONFIG_DISPLAY_NAME) or DEFAULT_DISPLAY_NAME
    ).strip()

    if labels:
        resolved_labels = parse_labels(labels)
    else:
        env_labels = env_or_none(INSTANCE_CONFIG_LABELS)
        resolved_labels = parse_labels([env_labels]) if env_labels else dict(DEFAULT_LABELS)

    resolved_timeout = _parse_timeout(timeout if timeout is not None else env_or_none(INSTANCE_CONFIG_TIMEOUT))

    return QuickstartConfig(
        project=resolved_project,
        base_config=resolved_base,
        config_id=resolved_id,
        display_name=resolved_display,
        labels=resolved_labels,
        timeout_seconds=resolved_timeout,
        emulator_host=(env_or_none(SPANNER_EMULATOR_HOST) or "").strip(),
        pretty=pretty,
        quiet=quiet,
    )
