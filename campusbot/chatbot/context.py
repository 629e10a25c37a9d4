# chatbot/context.py
from __future__ import annotations

from typing import List

from campusbot.chatbot.hits import Hit
from campusbot.chatbot.intent_schema import ALLOWED_HITS, PROFESSOR_HITS

MAX_SNIPPETS = 5
SNIPPET_CHARS = 600

ANTI_FABRICATION = (
    "Important: Do NOT invent professor names. Only recommend names present in the context "
    "snippets. If none are present, say we don't have that info and ask for the exact course "
    'code (e.g., "MATH 1A").'
)


def filter_hits(hits: List[Hit], intent: str) -> List[Hit]:
    """
    Keep only hit types that make sense for the intent. A ranking question
    with no professor/ranking hit left may still use FAQ cards (web links).
    """
    allowed = ALLOWED_HITS.get(intent, ALLOWED_HITS["generic"])
    kept = [h for h in hits if h.type in allowed]
    if intent == "prof_ranking" and not any(h.type in PROFESSOR_HITS for h in kept):
        kept = [h for h in hits if h.type in allowed or h.type == "faq"]
    return kept


def truncate(text: str, limit: int = SNIPPET_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def build_snippets(hits: List[Hit], max_snippets: int = MAX_SNIPPETS, limit: int = SNIPPET_CHARS) -> str:
    return "\n\n".join(
        f"Snippet {i} [{h.type}]:\n{truncate(h.render(), limit)}"
        for i, h in enumerate(hits[:max_snippets], start=1)
    )


def anti_fabrication_directive(hits: List[Hit], intent: str) -> str:
    """Empty unless a ranking question has no professor to ground the answer."""
    if intent == "prof_ranking" and not any(h.type in PROFESSOR_HITS for h in hits):
        return ANTI_FABRICATION
    return ""
