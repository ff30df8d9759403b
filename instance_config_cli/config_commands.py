from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import Any, Callable, TextIO

import grpc
from google.api_core.operation import Operation
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import spanner_admin_instance_v1
from google.cloud.spanner_admin_instance_v1.services.instance_admin.transports import (
    InstanceAdminGrpcTransport,
)
from google.protobuf import field_mask_pb2

from .cli_shared import (
    REMOTE_ERRORS,
    Deadline,
    OpError,
    QuickstartConfig,
    UsageError,
    _dumps,
    _eprint,
)

# Only these paths may change after creation; replica topology is immutable.
UPDATE_MASK_PATHS = ("display_name", "labels")


@dataclass
class AdminContext:
    client: Any
    config: QuickstartConfig
    deadline: Deadline

    def close(self) -> None:
        transport = getattr(self.client, "transport", None)
        if transport is not None:
            transport.close()

    def progress(self, msg: str) -> None:
        if not self.config.quiet:
            _eprint(msg)


def _admin_client(config: QuickstartConfig) -> Any:
    if config.emulator_host:
        transport = InstanceAdminGrpcTransport(channel=grpc.insecure_channel(config.emulator_host))
        return spanner_admin_instance_v1.InstanceAdminClient(transport=transport)
    try:
        return spanner_admin_instance_v1.InstanceAdminClient()
    except DefaultCredentialsError as e:
        raise OpError(f"failed to create instance admin client: {e}") from e


def build_admin_context(config: QuickstartConfig) -> AdminContext:
    # Start the clock before the client exists so credential lookup counts too.
    deadline = Deadline(config.timeout_seconds)
    return AdminContext(client=_admin_client(config), config=config, deadline=deadline)


def _render_config(msg: spanner_admin_instance_v1.InstanceConfig, *, pretty: bool) -> str:
    doc = spanner_admin_instance_v1.InstanceConfig.to_dict(msg, use_integers_for_enums=False)
    return _dumps(doc, pretty=pretty)


def _get_instance_config(ctx: AdminContext, config_id: str) -> spanner_admin_instance_v1.InstanceConfig:
    return ctx.client.get_instance_config(
        request=spanner_admin_instance_v1.GetInstanceConfigRequest(name=ctx.config.config_path(config_id)),
        timeout=ctx.deadline.remaining(),
    )


def _wait(ctx: AdminContext, op: Operation, *, what: str) -> Any:
    name = getattr(getattr(op, "operation", None), "name", "") or "operation"
    ctx.progress(f"waiting for {what} ({name}) to complete")
    return op.result(timeout=ctx.deadline.remaining())


def custom_config_from_base(
    base: spanner_admin_instance_v1.InstanceConfig,
    config: QuickstartConfig,
) -> spanner_admin_instance_v1.InstanceConfig:
    """Build a user-managed config carrying every replica of ``base``.

    The service rejects a partial replica list, so the base replicas are
    followed by all of its optional read-only replicas.
    """

    return spanner_admin_instance_v1.InstanceConfig(
        name=config.custom_config_path,
        display_name=config.display_name,
        config_type=spanner_admin_instance_v1.InstanceConfig.Type.USER_MANAGED,
        replicas=list(base.replicas) + list(base.optional_replicas),
        base_config=config.base_config_path,
        labels=dict(config.labels),
    )


def cmd_create_instance_config(ctx: AdminContext, out: TextIO) -> int:
    cfg = ctx.config
    base = _get_instance_config(ctx, cfg.base_config)
    op = ctx.client.create_instance_config(
        request=spanner_admin_instance_v1.CreateInstanceConfigRequest(
            parent=cfg.project_path,
            instance_config_id=cfg.config_id,
            instance_config=custom_config_from_base(base, cfg),
        ),
        timeout=ctx.deadline.remaining(),
    )
    _wait(ctx, op, what=f"create of {cfg.config_id}")

    created = _get_instance_config(ctx, cfg.config_id)
    out.write(f"Created instance config [{_render_config(created, pretty=cfg.pretty)}]\n")
    return 0


def cmd_update_instance_config(ctx: AdminContext, out: TextIO) -> int:
    cfg = ctx.config
    current = _get_instance_config(ctx, cfg.config_id)
    current.display_name = cfg.updated_display_name
    current.labels["updated"] = "true"
    op = ctx.client.update_instance_config(
        request=spanner_admin_instance_v1.UpdateInstanceConfigRequest(
            instance_config=current,
            update_mask=field_mask_pb2.FieldMask(paths=list(UPDATE_MASK_PATHS)),
        ),
        timeout=ctx.deadline.remaining(),
    )
    _wait(ctx, op, what=f"update of {cfg.config_id}")

    updated = _get_instance_config(ctx, cfg.config_id)
    out.write(f"Updated instance config [{_render_config(updated, pretty=cfg.pretty)}]\n")
    return 0


def cmd_delete_instance_config(ctx: AdminContext, out: TextIO) -> int:
    # Fails with FailedPrecondition while any instance still uses the config.
    cfg = ctx.config
    ctx.client.delete_instance_config(
        request=spanner_admin_instance_v1.DeleteInstanceConfigRequest(name=cfg.custom_config_path),
        timeout=ctx.deadline.remaining(),
    )
    out.write(f"Deleted instance config [{cfg.config_id}]\n")
    return 0


def cmd_list_instance_config_operations(ctx: AdminContext, out: TextIO) -> int:
    cfg = ctx.config
    request = spanner_admin_instance_v1.ListInstanceConfigOperationsRequest(
        parent=cfg.project_path,
        filter=cfg.operations_filter,
    )
    count = 0
    while True:
        # Page by page: every fetch gets only what is left of the deadline.
        page = ctx.client.list_instance_config_operations(request=request, timeout=ctx.deadline.remaining())
        for op in page.operations:
            out.write(f"Instance config operation for [{op.name}] has status [{op.done}]\n")
            count += 1
        if not page.next_page_token:
            break
        request.page_token = page.next_page_token
    if not count:
        out.write(f"No instance config operations found for [{cfg.config_id}]\n")
    return 0


Command = Callable[[AdminContext, TextIO], int]

COMMANDS: dict[str, Command] = {
    "create_instance_config": cmd_create_instance_config,
    "update_instance_config": cmd_update_instance_config,
    "delete_instance_config": cmd_delete_instance_config,
    "list_instance_config_operations": cmd_list_instance_config_operations,
}

COMMAND_HELP: dict[str, str] = {
    "create_instance_config": "Create the custom instance config from its base config.",
    "update_instance_config": "Change the display name and labels of the custom config.",
    "delete_instance_config": "Delete the custom config unless an instance still uses it.",
    "list_instance_config_operations": "List create operations recorded for the custom config.",
}


def resolve_command(name: str) -> Command:
    fn = COMMANDS.get(str(name or "").strip())
    if fn is None:
        raise UsageError(f"unknown command {name!r}; expected one of: {', '.join(COMMANDS)}")
    return fn


def run(ctx: AdminContext, command: str, out: TextIO) -> int:
    fn = resolve_command(command)
    try:
        return int(fn(ctx, out))
    except (*REMOTE_ERRORS, OpError) as e:
        out.write(f"{command} failed with {e}\n")
        raise


def execute(config: QuickstartConfig, command: str, out: TextIO) -> int:
    """Validate ``command`` before any client exists, then run it and release the client."""

    resolve_command(command)
    with contextlib.closing(build_admin_context(config)) as ctx:
        return run(ctx, command, out)
