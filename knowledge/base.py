"""
KnowledgeBase definition.

This module defines the business facts the phone assistant is allowed to
speak about. The prompt builder renders these fields verbatim into the
system prompt; the language model gets no other source of facts.

A KnowledgeBase is built once at startup and shared read-only by every
call turn.
"""
import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Union


@dataclass(frozen=True)
class KnowledgeBase:
    """
    Immutable record of the business facts.

    Attributes:
        name: Business name as spoken to callers
        address: Street address
        phone: Public phone number
        hours: Opening hours
        pricing: Prices of the main services
        policies: Cancellation / emergency policies
    """
    name: str
    address: str
    phone: str
    hours: str
    pricing: str
    policies: str

    def field_values(self) -> List[str]:
        """Get all field values in declaration order."""
        return [getattr(self, f.name) for f in fields(self)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeBase":
        """
        Build a KnowledgeBase from a mapping.

        Every field is required and must be a non-blank string.

        Raises:
            ValueError: If a field is missing, blank or not a string.
        """
        values: Dict[str, str] = {}
        for f in fields(cls):
            value = data.get(f.name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Knowledge base field '{f.name}' is missing or blank")
            values[f.name] = value.strip()
        return cls(**values)


# =============================================================================
# DEFAULT RECORD
# =============================================================================

CABINET_SANTE_ACTIVE = KnowledgeBase(
    name="Cabinet Santé Active",
    address="12 rue de Paris, 75010 Paris",
    phone="+33 1 23 45 67 89",
    hours="Lundi–Samedi, 9h–19h",
    pricing="Séance: 50€; Bilan initial: 65€",
    policies="Annulation 24h à l'avance sans frais. En cas d'urgence, appelez le 112.",
)

DEFAULT_KNOWLEDGE_BASE = CABINET_SANTE_ACTIVE


def load_knowledge_base(path: Union[str, Path, None] = None) -> KnowledgeBase:
    """
    Load the KnowledgeBase for this deployment.

    With no path the built-in default record is returned. Otherwise the
    file must be a JSON object holding the six KnowledgeBase fields.

    Raises:
        ValueError: If the file is unreadable, not a JSON object, or a
            field is missing.
    """
    if not path:
        return DEFAULT_KNOWLEDGE_BASE

    kb_path = Path(path)
    try:
        data = json.loads(kb_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Cannot read knowledge base file {kb_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Knowledge base file {kb_path} must contain a JSON object")

    return KnowledgeBase.from_dict(data)
