from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import SecretStr, ValidationError

from .config_schema import AppConfig
from .errors import ConfigError
from .ids import parse_token


@dataclass(frozen=True)
class RuntimeSecrets:
    token: SecretStr


def load_config(path: str | Path) -> AppConfig:
    """
    Read the instance, crawl and throttle sections from a YAML file.

    Only `instance.host` is mandatory; a blank file fails on that key alone.
    """
    p = Path(path)

    try:
        document = yaml.safe_load(p.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {p}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {p}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"{p} is not valid YAML: {e}") from e

    if document is None:
        document = {}
    elif not isinstance(document, dict):
        raise ConfigError(f"{p} must contain a YAML mapping at the top level")

    try:
        return AppConfig.model_validate(document)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def resolve_runtime_secrets(
    config: AppConfig, *, environ: Mapping[str, str] | None = None
) -> RuntimeSecrets:
    """Look up the Misskey API token in `instance.token_env`."""
    env = os.environ if environ is None else environ

    token_env = config.instance.token_env
    try:
        token = parse_token(env.get(token_env) or "")
    except ValueError as e:
        raise ConfigError(f"Environment variable {token_env} must hold the Misskey API token") from e

    return RuntimeSecrets(token=token)


def config_sha256(config: AppConfig) -> str:
    """Fingerprint of the effective settings, logged alongside each run."""
    payload = json.dumps(
        config.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    problems = [
        f"  {'.'.join(str(part) for part in item.get('loc', ())) or '<root>'}: {item.get('msg', 'invalid value')}"
        for item in err.errors()
    ]
    return "\n".join([f"{path} is not a valid archiver config:", *problems])
