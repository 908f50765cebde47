"""
Urgency classifier.

Flags caller utterances that should be escalated to a human. Matching is a
case-insensitive substring search against a keyword lexicon.

A false positive only adds an escalation notice to the call; a false
negative leaves an urgent caller with the standard reply. Extend the
lexicon (URGENCY_KEYWORDS) rather than narrowing it.
"""
import unicodedata
from typing import Iterable, List, Optional, Tuple

DEFAULT_URGENCY_LEXICON: Tuple[str, ...] = (
    "urgence",
    "urgent",
    "fuite",
    "accident",
    "douleur",
    "immédiat",
    "immediat",
    "saigne",
    "malaise",
    "blessé",
    "blesse",
)


def _normalize(text: str) -> str:
    # STT output may use decomposed accents
    return unicodedata.normalize("NFC", text).casefold()


def build_lexicon(extra_keywords: Iterable[str] = ()) -> Tuple[str, ...]:
    """
    Build a lexicon from the defaults plus deployment-supplied keywords.

    Blank and duplicate keywords are dropped; order is preserved.
    """
    lexicon: List[str] = []
    for keyword in list(DEFAULT_URGENCY_LEXICON) + list(extra_keywords):
        normalized = _normalize(keyword.strip())
        if normalized and normalized not in lexicon:
            lexicon.append(normalized)
    return tuple(lexicon)


def matched_keywords(
    utterance: Optional[str],
    lexicon: Iterable[str] = DEFAULT_URGENCY_LEXICON,
) -> List[str]:
    """Get the lexicon keywords found in the utterance."""
    if not utterance:
        return []
    text = _normalize(utterance)
    return [kw for kw in lexicon if kw and _normalize(kw) in text]


def classify(
    utterance: Optional[str],
    lexicon: Iterable[str] = DEFAULT_URGENCY_LEXICON,
) -> bool:
    """Return True if the utterance contains any urgency keyword."""
    return bool(matched_keywords(utterance, lexicon))
