from __future__ import annotations

import json
import os
import sys
import time
from concurrent import futures
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

from google.api_core.exceptions import DeadlineExceeded, GoogleAPICallError, RetryError


class QuickstartError(Exception):
    pass


class UsageError(QuickstartError):
    pass


class OpError(QuickstartError):
    pass


# Errors surfaced by the admin client and its long-running operations.
REMOTE_ERRORS: tuple[type[BaseException], ...] = (GoogleAPICallError, RetryError, futures.TimeoutError)

INSTANCE_CONFIG_PROJECT = "INSTANCE_CONFIG_PROJECT"
INSTANCE_CONFIG_BASE = "INSTANCE_CONFIG_BASE"
INSTANCE_CONFIG_ID = "INSTANCE_CONFIG_ID"
INSTANCE_CONFIG_DISPLAY_NAME = "INSTANCE_CONFIG_DISPLAY_NAME"
INSTANCE_CONFIG_LABELS = "INSTANCE_CONFIG_LABELS"
INSTANCE_CONFIG_TIMEOUT = "INSTANCE_CONFIG_TIMEOUT"
GOOGLE_CLOUD_PROJECT = "GOOGLE_CLOUD_PROJECT"
SPANNER_EMULATOR_HOST = "SPANNER_EMULATOR_HOST"

DEFAULT_PROJECT = "my-project"
# e.g. "nam7" or "eur6" on a real project.
DEFAULT_BASE_CONFIG = "base-config-with-optional-replicas"
# Custom config ids must start with CUSTOM_CONFIG_PREFIX.
DEFAULT_CONFIG_ID = "custom-quickstart-py"
DEFAULT_DISPLAY_NAME = "Custom quickstart py"
DEFAULT_UPDATED_DISPLAY_NAME = "Updated custom quickstart py"
DEFAULT_LABELS = {"cmmr_phase2_quickstart_py": "true"}
DEFAULT_TIMEOUT_SECONDS = 60.0

CUSTOM_CONFIG_PREFIX = "custom-"
CREATE_METADATA_TYPE = "type.googleapis.com/google.spanner.admin.instance.v1.CreateInstanceConfigMetadata"


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


@dataclass(frozen=True)
class QuickstartConfig:
    project: str = DEFAULT_PROJECT
    base_config: str = DEFAULT_BASE_CONFIG
    config_id: str = DEFAULT_CONFIG_ID
    display_name: str = DEFAULT_DISPLAY_NAME
    updated_display_name: str = DEFAULT_UPDATED_DISPLAY_NAME
    labels: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_LABELS))
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    emulator_host: str = ""
    pretty: bool = True
    quiet: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))

    @property
    def project_path(self) -> str:
        return f"projects/{self.project}"

    def config_path(self, config_id: str) -> str:
        return f"{self.project_path}/instanceConfigs/{config_id}"

    @property
    def base_config_path(self) -> str:
        return self.config_path(self.base_config)

    @property
    def custom_config_path(self) -> str:
        return self.config_path(self.config_id)

    @property
    def operations_filter(self) -> str:
        return (
            f"(metadata.@type={CREATE_METADATA_TYPE}) AND "
            f"(metadata.instance_config.name:{self.config_id})"
        )


class Deadline:
    """One time budget shared by every remote call of an invocation."""

    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.seconds = float(seconds)
        self._clock = clock
        self._expires_at = clock() + self.seconds

    def remaining(self) -> float:
        left = self._expires_at - self._clock()
        if left <= 0:
            raise DeadlineExceeded(f"deadline of {self.seconds:g}s exceeded")
        return left


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _dumps(obj: Any, *, pretty: bool) -> str:
    if pretty:
        return json.dumps(obj, indent=2, sort_keys=True)
    return json.dumps(obj, separators=(",", ":"), sort_keys=True)
