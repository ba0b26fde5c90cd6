from __future__ import annotations

from typing import Annotated, Any, Mapping

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    Strict,
    field_validator,
)

from .ids import NoteId, UserId
from .reaction import CanonicalEmojiKey, classify, reaction_key_from_wire, render

NonNegativeInt = Annotated[int, Field(ge=0)]

# Booleans and floats are rejected, not coerced.
ReactionCount = Annotated[int, Strict(), Field(gt=0)]

ReactionKey = Annotated[
    CanonicalEmojiKey,
    PlainValidator(reaction_key_from_wire),
    PlainSerializer(render, return_type=str),
]


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _merge_reaction_counts(raw: Mapping[Any, Any]) -> dict[Any, Any]:
    """
    Fold raw reaction strings that canonicalize to the same key.

    The first raw spelling is kept so validation errors point at a wire key.
    Invalid counts are never summed away.
    """
    first_spelling: dict[CanonicalEmojiKey, Any] = {}
    out: dict[Any, Any] = {}

    for spelling, count in raw.items():
        if not isinstance(spelling, str):
            out[spelling] = count
            continue

        key = classify(spelling)
        if key not in first_spelling:
            first_spelling[key] = spelling
            out[spelling] = count
            continue

        kept = first_spelling[key]
        prev = out[kept]
        if _is_count(prev) and _is_count(count):
            out[kept] = prev + count
        elif _is_count(prev):
            out[kept] = count

    return out


class PartialUser(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    # Display name is resolved later through users/show.
    id: UserId


class Note(BaseModel):
    """One channel timeline entry, as archived."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: NoteId
    created_at: AwareDatetime = Field(alias="createdAt")
    user: PartialUser
    # None for a pure renote; the quoted text for a quote renote.
    text: str | None = None
    cw: str | None = None
    reply_id: NoteId | None = Field(default=None, alias="replyId")
    renote_id: NoteId | None = Field(default=None, alias="renoteId")
    renote_count: NonNegativeInt = Field(alias="renoteCount")
    replies_count: NonNegativeInt = Field(alias="repliesCount")
    reactions: dict[ReactionKey, ReactionCount] = Field(default_factory=dict)

    @field_validator("reactions", mode="before")
    @classmethod
    def _fold_equivalent_reactions(cls, v: Any) -> Any:
        if isinstance(v, Mapping):
            return _merge_reaction_counts(v)
        return v

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DetailedUser(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: UserId
    name: str | None = None
    username: str
    host: str | None = None
    is_bot: bool = Field(default=False, alias="isBot")
    is_cat: bool = Field(default=False, alias="isCat")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")

    def display_label(self) -> str:
        if self.name and self.name.strip():
            return self.name
        return f"@{self.username}"

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
