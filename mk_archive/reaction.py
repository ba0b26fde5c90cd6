from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Union

import emoji

_CUSTOM_RE = re.compile(r":([a-z0-9_-]+)@\.:")
_KEYCAP = "\u20e3"
_ASCII_DIGITS = "0123456789"


@dataclass(frozen=True)
class Custom:
    """Emoji hosted on the local instance, written as `:name@.:`."""

    name: str


@dataclass(frozen=True)
class Unicode:
    """Registry emoji, stored in its fully-qualified form."""

    utf8: str


@dataclass(frozen=True)
class BoxedSingleDigit:
    digit: int


@dataclass(frozen=True)
class SingleCodepointPunctuation:
    char: str


@dataclass(frozen=True)
class Uncategorized:
    raw: str


CanonicalEmojiKey = Union[
    Custom,
    Unicode,
    BoxedSingleDigit,
    SingleCodepointPunctuation,
    Uncategorized,
]

_KEY_TYPES = (Custom, Unicode, BoxedSingleDigit, SingleCodepointPunctuation, Uncategorized)


def _fully_qualified_emoji(raw: str) -> str | None:
    """
    Return the registry's fully-qualified form of `raw`, or None if `raw` is
    not a complete emoji sequence known to the registry.
    """
    data = emoji.EMOJI_DATA.get(raw)
    if data is None:
        return None

    status = data.get("status")
    if status is None or status <= emoji.STATUS["fully_qualified"]:
        return raw

    # Minimally-qualified and unqualified entries share their CLDR name with
    # the fully-qualified entry, which is what emojize() resolves to.
    name = data.get("en")
    if name:
        qualified = emoji.emojize(name)
        if qualified != name and qualified in emoji.EMOJI_DATA:
            return qualified
    return raw


def _is_punctuation_or_symbol(char: str) -> bool:
    return unicodedata.category(char)[:1] in ("P", "S")


def classify(raw: str) -> CanonicalEmojiKey:
    """
    Map a raw reaction string onto its canonical key.

    Checks run in a fixed order and the first match wins:

    - `:name@.:` local custom emoji
    - ASCII digit followed by U+20E3 (keycap)
    - complete emoji sequence from the registry
    - a single punctuation or symbol codepoint
    - anything else, verbatim (including the empty string)

    The keycap check precedes the registry lookup because the registry also
    lists unqualified keycap sequences.
    """
    m = _CUSTOM_RE.fullmatch(raw)
    if m is not None:
        return Custom(name=m.group(1))

    if len(raw) == 2 and raw[0] in _ASCII_DIGITS and raw[1] == _KEYCAP:
        return BoxedSingleDigit(digit=ord(raw[0]) - ord("0"))

    qualified = _fully_qualified_emoji(raw)
    if qualified is not None:
        return Unicode(utf8=qualified)

    if len(raw) == 1 and _is_punctuation_or_symbol(raw):
        return SingleCodepointPunctuation(char=raw)

    return Uncategorized(raw=raw)


def render(key: CanonicalEmojiKey) -> str:
    """Serialize a canonical key back to its wire form."""
    if isinstance(key, Custom):
        return f":{key.name}@.:"
    if isinstance(key, Unicode):
        return key.utf8
    if isinstance(key, BoxedSingleDigit):
        return f"{key.digit}{_KEYCAP}"
    if isinstance(key, SingleCodepointPunctuation):
        return key.char
    if isinstance(key, Uncategorized):
        return key.raw
    raise TypeError(f"not a reaction key: {key!r}")


def reaction_key_from_wire(value: Any) -> CanonicalEmojiKey:
    if isinstance(value, _KEY_TYPES):
        return value
    if isinstance(value, str):
        return classify(value)
    raise ValueError("reaction key must be a string")
