# chatbot/intent.py
from __future__ import annotations
from dataclasses import dataclass, field
import re
from typing import Iterable, List, Optional, TYPE_CHECKING

from campusbot.chatbot.intent_schema import Intent

if TYPE_CHECKING:
    from campusbot.chatbot.knowledge import Professor
    from campusbot.chatbot.session import SessionState

BEST_PROF_PATTERN = re.compile(r"best\s+(prof|professor)", re.I)
RANKING_PROF_PATTERN = re.compile(r"(best|top|easiest)\s+(prof|professor)", re.I)

DATA_SCIENCE_PATTERN = re.compile(r"\b(data\s*science|data\s*theory|ds)\b")
UC_PATTERN = re.compile(
    r"\b(uc|ucla|ucsd|ucsb|uci|ucd|ucsc|ucr|ucm|berkeley|irvine|davis|riverside|merced"
    r"|santa\s*barbara|santa\s*cruz|san\s*diego)\b"
)
REQUIREMENTS_PATTERN = re.compile(
    r"\b(requirement|requirements|prereq|prereqs|prerequisite|prerequisites|courses|course list"
    r"|classes|curriculum|plan)\b"
)

CLASS_FULL_PATTERN = re.compile(r"\b(waitlist|full|closed|no seats|class is full)\b")
TUTORING_PATTERN = re.compile(r"\b(tutor|tutoring|stem center|writing center)\b")
DEADLINE_PATTERN = re.compile(r"\b(deadline|last day|drop|withdraw|add|calendar)\b")
WHO_TO_TAKE_PATTERN = re.compile(r"\bwho should i take\b")

# campus hint patterns, checked in order; first hit wins
CAMPUS_HINTS = [
    (re.compile(r"\b(ucsd|san diego)\b"), "uc san diego"),
    (re.compile(r"\b(ucla|los angeles)\b"), "ucla"),
    (re.compile(r"\b(ucsb|santa barbara)\b"), "uc santa barbara"),
    (re.compile(r"\b(uci|irvine)\b"), "uc irvine"),
    (re.compile(r"\b(ucd|davis)\b"), "uc davis"),
    (re.compile(r"\b(ucsc|santa cruz)\b"), "uc santa cruz"),
    (re.compile(r"\b(ucr|riverside)\b"), "uc riverside"),
    (re.compile(r"\b(ucm|merced)\b"), "uc merced"),
    (re.compile(r"\b(berkeley|cal)\b"), "uc berkeley"),
]

DEPT_HINTS = [
    (re.compile(r"math"), "mathematics"),
    (re.compile(r"\bcs\b|\bcis\b|computer science"), "computer science"),
    (re.compile(r"physics"), "physics"),
    (re.compile(r"chem"), "chemistry"),
]


@dataclass
class RankRequest:
    tags: List[str] = field(default_factory=list)   # e.g. ["easiest"]
    asked: bool = False                             # any ranking language at all


def words(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", (text or "").lower())


def asks_best_professor(text: str) -> bool:
    return bool(BEST_PROF_PATTERN.search(text or ""))


def asks_professor_ranking(text: str) -> bool:
    return bool(RANKING_PROF_PATTERN.search(text or ""))


def parse_rank_intent(text: str) -> RankRequest:
    q = (text or "").lower()
    want_best = bool(re.search(r"best\s+(prof|professor)", q) or re.search(r"\btop\b", q))
    want_second = bool(re.search(r"(second|2nd)\s+best", q))
    want_easiest = bool(re.search(r"\beasiest\b", q))
    want_teach = bool(re.search(r"(best\s+teaching|teaches\s+best|best\s+teacher)", q))

    tags: List[str] = []
    if want_second:
        tags.append("second_best")
    if want_easiest:
        tags.append("easiest")
    if want_teach:
        tags.append("best_teaching")
    if not tags and want_best:
        tags.append("best_overall")
    return RankRequest(tags=tags, asked=want_best or want_second or want_easiest or want_teach)


def is_major_req_query(text: str) -> bool:
    q = (text or "").lower()
    if not DATA_SCIENCE_PATTERN.search(q):
        return False
    return bool(UC_PATTERN.search(q) or REQUIREMENTS_PATTERN.search(q))


def extract_campus_hint(text: str) -> Optional[str]:
    q = (text or "").lower()
    for pattern, campus in CAMPUS_HINTS:
        if pattern.search(q):
            return campus
    return None


def extract_dept_hint(text: str) -> Optional[str]:
    q = (text or "").lower()
    for pattern, dept in DEPT_HINTS:
        if pattern.search(q):
            return dept
    return None


def last_name(name: str) -> str:
    parts = (name or "").lower().split()
    return parts[-1] if parts else ""


def mentions_professor(text: str, professors: Iterable["Professor"]) -> bool:
    """Full name anywhere in the text, or a whole-word last name."""
    s = (text or "").lower()
    professors = [p for p in professors if p.name]
    if any(p.name.lower() in s for p in professors):
        return True
    last_names = {last_name(p.name) for p in professors}
    return any(w in last_names for w in words(text))


def detect_intent(
    text: str,
    professors: Iterable["Professor"] = (),
    session: Optional["SessionState"] = None,
) -> Intent:
    """
    Rule-based intent. Order matters: major and ranking questions are checked
    before name mentions, since "best prof for math 1a" may also contain a
    token that happens to be somebody's last name.
    """
    s = (text or "").lower()

    if is_major_req_query(s):
        return "major_requirements"
    if RANKING_PROF_PATTERN.search(s):
        return "prof_ranking"
    if mentions_professor(text, professors):
        return "prof_lookup"
    if CLASS_FULL_PATTERN.search(s):
        return "class_full"
    if TUTORING_PATTERN.search(s):
        return "tutoring"
    if DEADLINE_PATTERN.search(s):
        return "deadline"
    if WHO_TO_TAKE_PATTERN.search(s) and session is not None and session.last_course:
        return "class_full"
    return "generic"
