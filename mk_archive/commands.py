from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from .ids import ChannelId, NoteId, UserId

CREDENTIAL_FIELD = "i"
DEFAULT_PAGE_SIZE = 60


class ChannelTimelineRequest(BaseModel):
    """Body of `channels/timeline`. Date bounds are epoch milliseconds."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    channel_id: ChannelId = Field(alias="channelId")
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=100)
    since_id: NoteId | None = Field(default=None, alias="sinceId")
    until_id: NoteId | None = Field(default=None, alias="untilId")
    since_date: int | None = Field(default=None, ge=0, alias="sinceDate")
    until_date: int | None = Field(default=None, ge=0, alias="untilDate")

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ShowUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    user_id: UserId = Field(alias="userId")

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def with_credential(body: Mapping[str, Any], token: SecretStr) -> dict[str, Any]:
    """Return the authenticated request body. Never log the result."""
    out = dict(body)
    out[CREDENTIAL_FIELD] = token.get_secret_value()
    return out


def redacted_body(body: Mapping[str, Any], token: SecretStr) -> dict[str, Any]:
    """Same shape as with_credential(), with the token shown as its redacted form."""
    out = dict(body)
    out[CREDENTIAL_FIELD] = str(token)
    return out
