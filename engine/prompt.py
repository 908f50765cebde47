"""
System prompt builder.

The system prompt is the ONLY grounding mechanism for the phone assistant:
there is no retrieval step, so every fact the model may state must appear
here verbatim.

NO I/O in this module. Same KnowledgeBase in, same prompt out.
"""
from knowledge.base import KnowledgeBase

SYSTEM_PROMPT_TEMPLATE = """Tu es l'assistant téléphonique professionnel de {name}.
Objectif: répondre utilement, poliment, en une ou deux phrases max.
Si on demande horaires/adresse/tarifs/politiques, utilise STRICTEMENT ces données:
- Nom: {name}
- Adresse: {address}
- Téléphone: {phone}
- Horaires: {hours}
- Tarifs: {pricing}
- Politique: {policies}
Ces données sont ta SEULE source d'information. N'invente jamais un horaire, un prix ou une politique.
Si la question sort du cadre, réponds brièvement que tu vas transmettre la demande à un humain.
Langue: {language}. Ton: chaleureux, pro, toujours le même registre. Pas de roman. Pas d'inventions."""


def build_system_prompt(kb: KnowledgeBase, language: str = "FR") -> str:
    """
    Build the system prompt for a KnowledgeBase.

    Args:
        kb: The business facts
        language: Output language code the model must answer in

    Returns:
        The system prompt text
    """
    return SYSTEM_PROMPT_TEMPLATE.format(
        name=kb.name,
        address=kb.address,
        phone=kb.phone,
        hours=kb.hours,
        pricing=kb.pricing,
        policies=kb.policies,
        language=language,
    )
