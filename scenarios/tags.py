"""Order tag parsing.

Shopify tags arrive as one comma separated string ("WhatsApp Sent, Size
Confirmed"). Tags are parsed once into a TagSet of word tuples; a
vocabulary phrase matches a tag when the phrase's words appear as a
contiguous run inside the tag's words.

    "Confirmed"       matches "Confirmed", "WhatsApp Confirmed"
    "Confirmed"       does not match "Unconfirmed"
    "Did not pick up" matches "Did not pick up (2nd call)"
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from core.config import TagVocabulary


TAG_DELIMITERS = re.compile(r"[,;|]")
_WORD = re.compile(r"[a-z0-9]+")


def _words(text: str) -> Tuple[str, ...]:
    return tuple(_WORD.findall(text.lower()))


def _contains_run(haystack: Tuple[str, ...], needle: Tuple[str, ...]) -> bool:
    if not needle or len(needle) > len(haystack):
        return False
    span = len(needle)
    return any(haystack[i:i + span] == needle for i in range(len(haystack) - span + 1))


class TagSet:
    """Parsed, case-insensitive view of an order's tag string."""

    def __init__(self, raw: Optional[str]):
        self.raw = raw or ""
        self.tags = tuple(
            tag.strip() for tag in TAG_DELIMITERS.split(self.raw) if tag.strip()
        )
        self._word_tags = tuple(_words(tag) for tag in self.tags)

    def contains(self, phrase: str) -> bool:
        needle = _words(phrase)
        return any(_contains_run(tag, needle) for tag in self._word_tags)

    def has_any(self, phrases: Iterable[str]) -> bool:
        return any(self.contains(phrase) for phrase in phrases)

    def __len__(self) -> int:
        return len(self.tags)

    def __repr__(self) -> str:
        return f"TagSet({list(self.tags)!r})"


@dataclass(frozen=True)
class TagFlags:
    """Lifecycle flags derived from a TagSet."""
    cancelled: bool = False
    whatsapp_sent: bool = False
    confirmed: bool = False
    did_not_pick_up: bool = False
    invalid_whatsapp: bool = False
    whatsapp_confirmed: bool = False
    awaiting_call: bool = False
    not_picking_phone: bool = False
    call_completed: bool = False
    size_confirmed: bool = False

    @classmethod
    def from_tags(cls, tags: TagSet, vocabulary: Optional[TagVocabulary] = None) -> "TagFlags":
        vocabulary = vocabulary or TagVocabulary()
        return cls(**{
            name: tags.has_any(getattr(vocabulary, name))
            for name in cls.__dataclass_fields__
        })


def parse_tag_flags(raw: Optional[str], vocabulary: Optional[TagVocabulary] = None) -> TagFlags:
    return TagFlags.from_tags(TagSet(raw), vocabulary)
