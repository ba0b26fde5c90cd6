from __future__ import annotations

import argparse
import sys
from contextlib import ExitStack
from typing import Sequence

from .config import config_sha256, load_config, resolve_runtime_secrets
from .crawl import crawl_channel
from .errors import ArchiveError, ConfigError, DecodeError
from .ids import parse_channel_id, parse_note_id, parse_user_id
from .run_log import RunLogger
from .sink import JsonLinesSink
from .users import read_user_ids, resolve_users_from_config, write_user_ids


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mk_archive")

    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser(
        "crawl",
        help="Archive a channel timeline, newest to oldest, as JSON lines.",
    )
    crawl.add_argument("--config", required=True, help="Path to YAML config file.")
    crawl.add_argument("--channel-id", type=parse_channel_id, help="Channel to archive.")
    crawl.add_argument(
        "--since-id",
        type=parse_note_id,
        help="Stop at notes newer than this id (lower bound for every page).",
    )
    crawl.add_argument(
        "--until-id",
        type=parse_note_id,
        help="Start from notes older than this id instead of the newest note.",
    )
    _add_output_args(crawl)
    crawl.add_argument(
        "--users-out",
        help="Write the ids of every note author seen, one per line.",
    )
    crawl.set_defaults(_handler=_cmd_crawl)

    users = subparsers.add_parser(
        "users",
        help="Resolve user profiles by id as JSON lines.",
    )
    users.add_argument("--config", required=True, help="Path to YAML config file.")
    users.add_argument(
        "--user-id",
        dest="user_ids",
        action="append",
        type=parse_user_id,
        default=[],
        help="User id to resolve (repeatable).",
    )
    users.add_argument("--ids-file", help="File with user ids, one per line.")
    _add_output_args(users)
    users.set_defaults(_handler=_cmd_users)

    return parser


def _add_output_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--out", help="Archive output path (default: stdout).")
    p.add_argument("--log", help="Progress log path (default: stderr).")


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _open_outputs(args: argparse.Namespace, stack: ExitStack) -> tuple[JsonLinesSink, RunLogger]:
    log_path = getattr(args, "log", None)
    log = RunLogger.open(log_path, overwrite=True) if log_path else RunLogger.to_stream(sys.stderr)
    stack.enter_context(log)

    out_path = getattr(args, "out", None)
    sink = JsonLinesSink.open(out_path) if out_path else JsonLinesSink.stdout()
    stack.enter_context(sink)
    return sink, log


def _cmd_crawl(args: argparse.Namespace) -> int:
    with ExitStack() as stack:
        sink, log = _open_outputs(args, stack)
        log.info("crawl_command_started", config_path=str(args.config))

        try:
            cfg = load_config(args.config)
            secrets = resolve_runtime_secrets(cfg)
            log.info(
                "config_loaded",
                f"instance {cfg.instance.host}",
                config_hash=config_sha256(cfg),
                host=cfg.instance.host,
                token_env=cfg.instance.token_env,
            )

            result = crawl_channel(
                cfg,
                secrets,
                sink=sink,
                logger=log,
                channel_id=args.channel_id,
                since_id=args.since_id,
                until_id=args.until_id,
            )

            if args.users_out:
                n = write_user_ids(args.users_out, result.users)
                log.info("users_written", f"wrote {n} user ids", path=str(args.users_out), users=n)

            _eprint(f"pages={result.pages}")
            _eprint(f"notes={result.notes}")
            _eprint(f"users={len(result.users)}")
            _eprint(f"cursor={result.cursor or ''}")
            return 0
        except Exception as e:
            _log_failure(log, "crawl_command_failed", e)
            raise


def _cmd_users(args: argparse.Namespace) -> int:
    with ExitStack() as stack:
        sink, log = _open_outputs(args, stack)
        log.info("users_command_started", config_path=str(args.config))

        try:
            cfg = load_config(args.config)
            secrets = resolve_runtime_secrets(cfg)
            log.info(
                "config_loaded",
                f"instance {cfg.instance.host}",
                config_hash=config_sha256(cfg),
                host=cfg.instance.host,
                token_env=cfg.instance.token_env,
            )

            user_ids = list(args.user_ids)
            if args.ids_file:
                user_ids.extend(read_user_ids(args.ids_file))

            result = resolve_users_from_config(cfg, secrets, user_ids, sink=sink, logger=log)

            _eprint(f"resolved={result.resolved}")
            return 0
        except Exception as e:
            _log_failure(log, "users_command_failed", e)
            raise


def _log_failure(log: RunLogger, event: str, exc: BaseException) -> None:
    if isinstance(exc, DecodeError):
        log.exception(
            event,
            exc=exc,
            status_code=exc.status_code,
            path=exc.path,
            body=exc.body,
        )
    else:
        log.exception(event, exc=exc)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except DecodeError as e:
        for line in e.diagnostic_lines():
            _eprint(line)
        return 3
    except ArchiveError as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
