from __future__ import annotations

from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .errors import ArchiveError, ConfigError, DecodeError, TransportError
from .reaction import CanonicalEmojiKey, classify, render

__all__ = [
    "AppConfig",
    "ArchiveError",
    "CanonicalEmojiKey",
    "ConfigError",
    "DecodeError",
    "TransportError",
    "classify",
    "config_sha256",
    "load_config",
    "render",
    "resolve_runtime_secrets",
]
