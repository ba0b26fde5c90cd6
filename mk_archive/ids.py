from __future__ import annotations

from typing import NewType

from pydantic import SecretStr

NoteId = NewType("NoteId", str)
ChannelId = NewType("ChannelId", str)
UserId = NewType("UserId", str)


def _non_empty(text: str, *, what: str) -> str:
    value = (text or "").strip()
    if not value:
        raise ValueError(f"{what} must be non-empty")
    return value


def parse_note_id(text: str) -> NoteId:
    return NoteId(_non_empty(text, what="note id"))


def parse_channel_id(text: str) -> ChannelId:
    return ChannelId(_non_empty(text, what="channel id"))


def parse_user_id(text: str) -> UserId:
    return UserId(_non_empty(text, what="user id"))


def parse_token(text: str) -> SecretStr:
    """
    Wrap an API token so that str()/repr() never show the value.

    Only SecretStr.get_secret_value() exposes it, which is reserved for
    building the authenticated request body.
    """
    return SecretStr(_non_empty(text, what="token"))
