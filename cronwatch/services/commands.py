"""
`/cron` slash command.

    /cron help
    /cron list | status | admins
    /cron runs <job> [limit]
    /cron register <job> every=<s> [max=<s>] [severity=low|medium|high]
                         [target=<channel>] [schedule="<cron>"] [description="..."]
                         [trigger_url=<url>]
    /cron update <job> key=value ...
    /cron deactivate|activate|delete <job>
    /cron maintainers <job>
    /cron maintainer add|remove <job> <@user>
    /cron admin add|remove <@user>

Registry mutations need an admin, or a maintainer of the job for
update/activate/deactivate/maintainer. delete needs a super-admin.
"""

import re
import shlex
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.core.datetime_utils import format_duration
from cronwatch.core.errors import CronwatchError, InvalidCommand, PermissionDenied
from cronwatch.core.logging import get_logger
from cronwatch.schemas.job import JobCreate, JobUpdate
from cronwatch.services import admins, ledger, maintainers, registry
from cronwatch.services.health import job_health
from cronwatch.services.slack_blocks import STATUS_EMOJI, status_lines

logger = get_logger(__name__)

HELP_TEXT = "\n".join(
    [
        "*Cron monitor commands*",
        "`/cron list` - registered jobs",
        "`/cron status` - health of active jobs",
        "`/cron runs <job> [limit]` - recent runs",
        "`/cron register <job> every=<s> [max=<s>] [severity=] [target=] [schedule=] [description=]`",
        "`/cron update <job> key=value ...`",
        "`/cron deactivate|activate|delete <job>`",
        "`/cron maintainers <job>`",
        "`/cron maintainer add|remove <job> @user`",
        "`/cron admins` / `/cron admin add|remove @user`",
    ]
)

# Command keys -> JobCreate/JobUpdate fields
FIELD_ALIASES = {
    "every": "expected_every_s",
    "expected_every_s": "expected_every_s",
    "max": "max_runtime_s",
    "max_runtime_s": "max_runtime_s",
    "severity": "severity",
    "target": "alert_target",
    "alert_target": "alert_target",
    "schedule": "schedule",
    "description": "description",
    "trigger_url": "manual_trigger_url",
}

NULL_WORDS = {"none", "null", "-"}

_MENTION_RE = re.compile(r"^<@([A-Z0-9]+)(?:\|[^>]*)?>$")
_RAW_ID_RE = re.compile(r"^([A-Z0-9]+)$")


@dataclass
class CommandResponse:
    """Slack response payload for a slash command."""

    text: str
    response_type: str = "ephemeral"

    def to_dict(self) -> dict[str, str]:
        return {"response_type": self.response_type, "text": self.text}


class CommandFailed(Exception):
    """A slash command was rejected; `response` is what the user sees."""

    def __init__(self, text: str) -> None:
        self.response = CommandResponse(text)
        super().__init__(text)


def parse_slack_user_id(text: str) -> str | None:
    """Accept `<@U123|name>`, `<@U123>` or a raw `U123` id."""
    trimmed = text.strip()
    match = _MENTION_RE.match(trimmed) or _RAW_ID_RE.match(trimmed)
    return match.group(1) if match else None


def parse_fields(tokens: list[str]) -> dict[str, Any]:
    """Turn `key=value` tokens into job fields. 'none' clears a nullable field."""
    fields: dict[str, Any] = {}
    for token in tokens:
        key, sep, value = token.partition("=")
        if not sep:
            raise InvalidCommand(f"Expected key=value, got `{token}`")
        field = FIELD_ALIASES.get(key.lower())
        if field is None:
            raise InvalidCommand(f"Unknown field `{key}`")
        fields[field] = None if value.lower() in NULL_WORDS else value
    return fields


def _require_args(args: list[str], count: int, usage: str) -> None:
    if len(args) < count:
        raise InvalidCommand(f"Usage: `{usage}`")


async def _require_admin(db: AsyncSession, user_id: str) -> None:
    if not await admins.is_admin(db, user_id):
        raise PermissionDenied("Only admins can do that.")


async def _require_admin_or_maintainer(db: AsyncSession, user_id: str, job_name: str) -> None:
    if await admins.is_admin(db, user_id):
        return
    if await maintainers.is_maintainer(db, job_name, user_id):
        return
    raise PermissionDenied(f"Only admins or maintainers of `{job_name}` can do that.")


async def _help(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    return CommandResponse(HELP_TEXT)


async def _list(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    jobs = await registry.list_jobs(db, active_only=False)
    if not jobs:
        return CommandResponse("_No jobs registered._")

    lines = []
    for job in jobs:
        line = f"`{job.name}` every {format_duration(job.expected_every_s)}, {job.severity.value}"
        if job.max_runtime_s:
            line += f", max {format_duration(job.max_runtime_s)}"
        if not job.active:
            line += " _(inactive)_"
        lines.append(line)
    return CommandResponse(":card_file_box: *Jobs:*\n" + "\n".join(lines))


async def _status(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    rows = await job_health(db)
    if not rows:
        return CommandResponse("_No active jobs._")
    return CommandResponse("\n".join(status_lines(rows)))


async def _runs(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    _require_args(args, 1, "/cron runs <job> [limit]")
    job = await registry.require_job(db, args[0])
    try:
        limit = int(args[1]) if len(args) > 1 else 10
    except ValueError as e:
        raise InvalidCommand("limit must be a number") from e
    if limit < 1:
        raise InvalidCommand("limit must be at least 1")
    limit = min(limit, 50)

    runs = await ledger.recent_for_job(db, job.name, limit=limit)
    if not runs:
        return CommandResponse(f"_No runs for `{job.name}`._")

    lines = []
    for run in runs:
        line = f"{STATUS_EMOJI.get(run.status, '')} {run.created_at:%Y-%m-%d %H:%M:%S} {run.status.value}"
        if run.duration_s is not None:
            line += f" ({run.duration_s:.1f}s)"
        if run.message:
            line += f" - {run.message[:100]}"
        lines.append(line)
    return CommandResponse(f"*Recent runs of `{job.name}`:*\n" + "\n".join(lines))


async def _register(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    _require_args(args, 2, "/cron register <job> every=<seconds> [max=<seconds>] ...")
    await _require_admin(db, user_id)

    fields = parse_fields(args[1:])
    body = JobCreate(name=args[0], **{k: v for k, v in fields.items() if v is not None})
    job = await registry.register_job(db, body, actor=user_id)
    await maintainers.add_maintainer(db, job.name, user_id, added_by=user_id)
    return CommandResponse(
        f":white_check_mark: Registered `{job.name}` (every {format_duration(job.expected_every_s)}). "
        "You are its first maintainer."
    )


async def _update(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    _require_args(args, 2, "/cron update <job> key=value ...")
    await _require_admin_or_maintainer(db, user_id, args[0])

    body = JobUpdate(**parse_fields(args[1:]))
    job = await registry.update_job(db, args[0], body, actor=user_id)
    return CommandResponse(f":pencil2: Updated `{job.name}`.")


async def _deactivate(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    _require_args(args, 1, "/cron deactivate <job>")
    await _require_admin_or_maintainer(db, user_id, args[0])
    job = await registry.deactivate_job(db, args[0], actor=user_id)
    return CommandResponse(f":zzz: `{job.name}` is no longer monitored. History is kept.")


async def _activate(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    _require_args(args, 1, "/cron activate <job>")
    await _require_admin_or_maintainer(db, user_id, args[0])
    job = await registry.activate_job(db, args[0], actor=user_id)
    return CommandResponse(f":eyes: `{job.name}` is monitored again.")


async def _delete(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    _require_args(args, 1, "/cron delete <job>")
    if not await admins.is_super_admin(db, user_id):
        raise PermissionDenied("Only super-admins can delete jobs.")
    await registry.delete_job(db, args[0], actor=user_id)
    return CommandResponse(f":wastebasket: Deleted `{args[0]}` and its run history.")


async def _maintainers(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    _require_args(args, 1, "/cron maintainers <job>")
    job = await registry.require_job(db, args[0])
    users = await maintainers.maintainer_ids(db, job.name)
    if not users:
        return CommandResponse(f"_`{job.name}` has no maintainers._")
    return CommandResponse(f"*Maintainers of `{job.name}`:* " + ", ".join(f"<@{u}>" for u in users))


async def _maintainer(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    usage = "/cron maintainer add|remove <job> @user"
    _require_args(args, 3, usage)
    action, job_name = args[0].lower(), args[1]
    target = parse_slack_user_id(args[2])
    if action not in ("add", "remove") or target is None:
        raise InvalidCommand(f"Usage: `{usage}`")

    await _require_admin_or_maintainer(db, user_id, job_name)

    if action == "add":
        await maintainers.add_maintainer(db, job_name, target, added_by=user_id)
        return CommandResponse(f":white_check_mark: <@{target}> now maintains `{job_name}`.")

    await maintainers.remove_maintainer(db, job_name, target, actor=user_id)
    return CommandResponse(f":wastebasket: <@{target}> no longer maintains `{job_name}`.")


async def _admins(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    await _require_admin(db, user_id)
    rows = await admins.list_admins(db)
    lines = [f"<@{a.user_id}>" + (" (super-admin)" if a.is_super_admin else "") for a in rows]
    return CommandResponse(":lock: *Admins:*\n" + ("\n".join(lines) or "_none_"))


async def _admin(db: AsyncSession, user_id: str, args: list[str]) -> CommandResponse:
    usage = "/cron admin add|remove @user"
    _require_args(args, 2, usage)
    action = args[0].lower()
    target = parse_slack_user_id(args[1])
    if action not in ("add", "remove") or target is None:
        raise InvalidCommand(f"Usage: `{usage}`")

    await _require_admin(db, user_id)

    if action == "add":
        await admins.add_admin(db, target, actor=user_id)
        return CommandResponse(f":white_check_mark: <@{target}> is now an admin.")

    await admins.remove_admin(db, target, actor=user_id)
    return CommandResponse(f":wastebasket: <@{target}> is no longer an admin.")


Handler = Callable[[AsyncSession, str, list[str]], Awaitable[CommandResponse]]

SUBCOMMANDS: dict[str, Handler] = {
    "help": _help,
    "list": _list,
    "status": _status,
    "runs": _runs,
    "register": _register,
    "update": _update,
    "deactivate": _deactivate,
    "activate": _activate,
    "delete": _delete,
    "maintainers": _maintainers,
    "maintainer": _maintainer,
    "admins": _admins,
    "admin": _admin,
}


async def handle_cron_command(db: AsyncSession, user_id: str, text: str) -> CommandResponse:
    """
    Run one `/cron` invocation.

    Errors are rendered as ephemeral text; the caller rolls back on them.
    """
    try:
        tokens = shlex.split(text or "")
    except ValueError as e:
        return CommandResponse(f":warning: Could not parse command: {e}")

    if not tokens:
        return CommandResponse(HELP_TEXT)

    name, args = tokens[0].lower(), tokens[1:]
    handler = SUBCOMMANDS.get(name)
    if handler is None:
        return CommandResponse(f":warning: Unknown command `{name}`.\n{HELP_TEXT}")

    log = logger.bind(user_id=user_id, subcommand=name)
    try:
        response = await handler(db, user_id, args)
    except PermissionDenied as e:
        log.warning("cron_command_denied")
        raise CommandFailed(f":no_entry: {e}") from e
    except InvalidCommand as e:
        raise CommandFailed(f":warning: {e}") from e
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise CommandFailed(f":warning: Invalid value: {problems}") from e
    except CronwatchError as e:
        log.bind(error=str(e)).warning("cron_command_failed")
        raise CommandFailed(f":x: {e}") from e

    log.info("cron_command_handled")
    return response
