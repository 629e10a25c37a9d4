# chatbot/intent_schema.py

from __future__ import annotations
from typing import Dict, FrozenSet, Literal


# Every query is classified into exactly one of these.
#
# - "major_requirements" : transfer / data-science major requirements at a UC
# - "prof_ranking"       : best / top / easiest professor for something
# - "prof_lookup"        : the user named a professor
# - "class_full"         : waitlist / closed class, drives the next-best handoff
# - "tutoring"           : tutoring, STEM center, writing center
# - "deadline"           : add / drop / withdraw dates
# - "generic"            : everything else
Intent = Literal[
    "major_requirements",
    "prof_ranking",
    "prof_lookup",
    "class_full",
    "tutoring",
    "deadline",
    "generic",
]

HitType = Literal["deadline", "professor", "course", "faq", "ranking", "major"]


# Which hit types are allowed into the LLM context for each intent.
ALLOWED_HITS: Dict[str, FrozenSet[str]] = {
    "prof_ranking": frozenset({"ranking", "professor", "course"}),
    "prof_lookup": frozenset({"professor", "course"}),
    "class_full": frozenset({"ranking", "faq", "deadline"}),
    "tutoring": frozenset({"faq", "course", "deadline"}),
    "deadline": frozenset({"deadline", "faq"}),
    "major_requirements": frozenset({"major", "faq", "course"}),
    "generic": frozenset({"professor", "course", "faq"}),
}

# Hits that actually name a professor.
PROFESSOR_HITS: FrozenSet[str] = frozenset({"ranking", "professor"})
