"""
Business knowledge base.
"""
from .base import (
    KnowledgeBase,
    CABINET_SANTE_ACTIVE,
    DEFAULT_KNOWLEDGE_BASE,
    load_knowledge_base,
)

__all__ = [
    "KnowledgeBase",
    "CABINET_SANTE_ACTIVE",
    "DEFAULT_KNOWLEDGE_BASE",
    "load_knowledge_base",
]
