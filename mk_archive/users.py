from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol, Sequence

from .client import MisskeyClient, request_log_hook
from .commands import ShowUserRequest
from .config import RuntimeSecrets
from .config_schema import AppConfig
from .errors import ConfigError
from .ids import UserId, parse_user_id
from .models import DetailedUser
from .run_log import RunLogger
from .sink import JsonLinesSink
from .throttle import SleepFn, sleep_ms


class ProfileSource(Protocol):
    def show_user(self, request: ShowUserRequest) -> DetailedUser: ...


@dataclass(frozen=True)
class UserResolutionResult:
    resolved: int


def read_user_ids(path: str | Path) -> list[UserId]:
    """Read user ids one per line, skipping blank lines and `#` comments."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read user id file: {p}") from e

    out: list[UserId] = []
    for line in text.splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        out.append(parse_user_id(s))
    return out


def write_user_ids(path: str | Path, user_ids: Iterable[UserId]) -> int:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    ids = sorted(set(user_ids))
    p.write_text("".join(f"{uid}\n" for uid in ids), encoding="utf-8")
    return len(ids)


def resolve_users(
    client: ProfileSource,
    user_ids: Sequence[UserId],
    *,
    sink: JsonLinesSink,
    delay_ms: int = 10000,
    logger: RunLogger | None = None,
    sleep_fn: SleepFn | None = None,
) -> UserResolutionResult:
    """
    Resolve each id in order, one request at a time.

    Duplicated ids are fetched again. The delay also follows the last request.
    """
    if delay_ms < 0:
        raise ValueError("delay_ms must be >= 0")

    resolved = 0
    for uid in user_ids:
        user = client.show_user(ShowUserRequest(user_id=uid))
        sink.write(user.to_wire())
        resolved += 1

        if logger is not None:
            logger.info(
                "user_resolved",
                f"resolved {uid} as {user.display_label()}",
                user_id=uid,
                index=resolved,
                total=len(user_ids),
            )

        if delay_ms > 0:
            if logger is not None:
                logger.info("sleep", f"sleeping {delay_ms} ms", delay_ms=delay_ms)
            sleep_ms(delay_ms, sleep_fn)

    return UserResolutionResult(resolved=resolved)


def resolve_users_from_config(
    config: AppConfig,
    secrets: RuntimeSecrets,
    user_ids: Sequence[UserId],
    *,
    sink: JsonLinesSink,
    logger: RunLogger | None = None,
    client: ProfileSource | None = None,
    sleep_fn: SleepFn | None = None,
) -> UserResolutionResult:
    if not user_ids:
        raise ConfigError("At least one user id is required (--user-id or --ids-file)")

    if logger is not None:
        logger.info("users_started", f"resolving {len(user_ids)} users", total=len(user_ids))

    if client is not None:
        result = resolve_users(
            client,
            user_ids,
            sink=sink,
            delay_ms=config.throttle.delay_ms,
            logger=logger,
            sleep_fn=sleep_fn,
        )
    else:
        with MisskeyClient(
            config.instance.host,
            secrets.token,
            timeout_seconds=config.instance.timeout_seconds,
            on_request=request_log_hook(logger),
        ) as owned:
            result = resolve_users(
                owned,
                user_ids,
                sink=sink,
                delay_ms=config.throttle.delay_ms,
                logger=logger,
                sleep_fn=sleep_fn,
            )

    if logger is not None:
        logger.info("users_completed", f"resolved {result.resolved} users", resolved=result.resolved)
    return result
