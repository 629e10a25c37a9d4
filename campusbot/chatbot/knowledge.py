# chatbot/knowledge.py

"""
In-memory knowledge base for one school.

The KB is loaded once from a JSON document shaped like:

{
    "school": {"name": "...", "website": "..."},
    "deadlines": [...],
    "professors": [...],
    "courses": [...],
    "faq": [...],
    "majors": [...],
    "rankings": {"MATH 1A": [{"name": "...", "rank": 1, "tags": [...]}]}
}

Professors are merged by normalized name so the rest of the code can assume
one record per person.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
import json
import logging

from campusbot.chatbot.courses import canonicalize

log = logging.getLogger("chatbot.knowledge")

MISSING_RANK = 999


@dataclass(frozen=True)
class School:
    name: str = "Unknown"
    website: str = ""


@dataclass(frozen=True)
class Deadline:
    term: str
    category: str
    description: str
    date: str
    time: Optional[str] = None
    notes: Optional[str] = None
    keywords: List[str] = field(default_factory=list)


@dataclass
class Professor:
    name: str
    department: str = ""
    rating: Optional[float] = None
    num_ratings: Optional[int] = None
    rmp_url: str = ""
    courses: List[str] = field(default_factory=list)
    reviews: str = ""


@dataclass(frozen=True)
class Course:
    code: str
    title: str = ""
    department: str = ""
    description: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Faq:
    q: str
    a: str
    keywords: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Major:
    campus: str
    program: str
    aliases: List[str] = field(default_factory=list)
    lower_division: List[str] = field(default_factory=list)
    upper_division: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    source_url: Optional[str] = None


@dataclass(frozen=True)
class RankingEntry:
    name: str
    rank: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    notes: Optional[str] = None

    @property
    def sort_rank(self) -> int:
        return self.rank if self.rank else MISSING_RANK


def normalize_name(name: str) -> str:
    """Dedup key for professor names: lowercase, single spaces."""
    return " ".join((name or "").lower().split())


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def _records(value: Any, section: str) -> List[Dict[str, Any]]:
    """The dict entries of a KB list section; anything else is skipped."""
    if not isinstance(value, list):
        if value:
            log.warning("KB section %r is not a list; ignoring it", section)
        return []
    rows = [r for r in value if isinstance(r, dict)]
    if len(rows) != len(value):
        log.warning("Skipped %d malformed %s record(s)", len(value) - len(rows), section)
    return rows


def _number(value: Any, cast, what: str):
    """float/int of a KB field; "N/A" and friends become None."""
    if value is None or value == "":
        return None
    try:
        return cast(float(value)) if cast is int else cast(value)
    except (TypeError, ValueError, OverflowError):
        log.warning("Ignoring non-numeric %s: %r", what, value)
        return None


def _professor_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Only the fields actually present in the raw record (used for merging)."""
    out: Dict[str, Any] = {}
    for key in ("name", "department", "rmp_url", "reviews"):
        if key in raw and raw[key] is not None:
            out[key] = str(raw[key])
    rating = _number(raw.get("rating"), float, f"rating for {raw.get('name')!r}")
    if rating is not None:
        out["rating"] = rating
    num_ratings = _number(raw.get("num_ratings"), int, f"num_ratings for {raw.get('name')!r}")
    if num_ratings is not None:
        out["num_ratings"] = num_ratings
    return out


def merge_professors(records: List[Dict[str, Any]]) -> List[Professor]:
    """
    Collapse duplicate professor records by normalized name.

    Later records overwrite the scalar fields they carry (except the name
    itself); course lists are unioned in first-seen order. Records without a
    name are dropped.
    """
    by_name: Dict[str, Dict[str, Any]] = {}
    for raw in records or []:
        if not isinstance(raw, dict):
            continue
        key = normalize_name(str(raw.get("name") or ""))
        if not key:
            continue

        courses = list(dict.fromkeys(_str_list(raw.get("courses"))))
        if key not in by_name:
            merged = _professor_fields(raw)
            merged["courses"] = courses
            by_name[key] = merged
            continue

        base = by_name[key]
        for c in courses:
            if c not in base["courses"]:
                base["courses"].append(c)
        # the first spelling of the name stays the display name
        fields = _professor_fields(raw)
        fields.pop("name", None)
        base.update(fields)

    return [Professor(**data) for data in by_name.values()]


@dataclass
class KnowledgeBase:
    school: School = field(default_factory=School)
    deadlines: List[Deadline] = field(default_factory=list)
    professors: List[Professor] = field(default_factory=list)
    courses: List[Course] = field(default_factory=list)
    faq: List[Faq] = field(default_factory=list)
    majors: List[Major] = field(default_factory=list)
    rankings: Dict[str, List[RankingEntry]] = field(default_factory=dict)
    valid_codes: Set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.valid_codes = {canonicalize(c.code) for c in self.courses}
        self.valid_codes.update(canonicalize(code) for code in self.rankings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeBase":
        school_raw = data.get("school") if isinstance(data.get("school"), dict) else {}
        school = School(
            name=str(school_raw.get("name") or "Unknown"),
            website=str(school_raw.get("website") or ""),
        )

        deadlines = [
            Deadline(
                term=str(d.get("term", "")),
                category=str(d.get("category", "")),
                description=str(d.get("description", "")),
                date=str(d.get("date", "")),
                time=d.get("time"),
                notes=d.get("notes"),
                keywords=_str_list(d.get("keywords")),
            )
            for d in _records(data.get("deadlines"), "deadlines")
        ]

        courses = [
            Course(
                code=canonicalize(str(c.get("code", ""))),
                title=str(c.get("title", "")),
                department=str(c.get("department", "")),
                description=c.get("description"),
                notes=c.get("notes"),
            )
            for c in _records(data.get("courses"), "courses")
            if c.get("code")
        ]

        faq = [
            Faq(q=str(f.get("q", "")), a=str(f.get("a", "")), keywords=_str_list(f.get("keywords")))
            for f in _records(data.get("faq"), "faq")
        ]

        majors = [
            Major(
                campus=str(m.get("campus", "")),
                program=str(m.get("program", "")),
                aliases=_str_list(m.get("aliases")),
                lower_division=_str_list(m.get("lower_division")),
                upper_division=_str_list(m.get("upper_division")),
                notes=m.get("notes"),
                source_url=m.get("source_url"),
            )
            for m in _records(data.get("majors"), "majors")
        ]

        rankings: Dict[str, List[RankingEntry]] = {}
        rankings_raw = data.get("rankings")
        if not isinstance(rankings_raw, dict):
            if rankings_raw:
                log.warning("KB section 'rankings' is not an object; ignoring it")
            rankings_raw = {}
        for code, entries in rankings_raw.items():
            rankings[canonicalize(code)] = [
                RankingEntry(
                    name=str(r.get("name", "")),
                    rank=_number(r.get("rank"), int, f"rank in {code} for {r.get('name')!r}"),
                    tags=_str_list(r.get("tags")),
                    notes=r.get("notes"),
                )
                for r in _records(entries, f"rankings[{code}]")
            ]

        return cls(
            school=school,
            deadlines=deadlines,
            professors=merge_professors(_records(data.get("professors"), "professors")),
            courses=courses,
            faq=faq,
            majors=majors,
            rankings=rankings,
        )

    def find_professor(self, name: str) -> Optional[Professor]:
        key = normalize_name(name)
        for p in self.professors:
            if normalize_name(p.name) == key:
                return p
        return None

    def find_course(self, code: str) -> Optional[Course]:
        key = canonicalize(code)
        for c in self.courses:
            if c.code == key:
                return c
        return None

    def ranked(self, code: str) -> List[RankingEntry]:
        """Ranking list for a course, best first. Ties keep file order."""
        entries = self.rankings.get(canonicalize(code), [])
        return sorted(entries, key=lambda r: r.sort_rank)

    def add_deadline_date(self) -> Optional[str]:
        for d in self.deadlines:
            if "add" in d.category.lower():
                return d.date
        return None


def load_knowledge_base(path: Path) -> KnowledgeBase:
    """
    Load the KB JSON file. A missing or unreadable file gives an empty KB
    so the assistant still runs (web search and the LLM keep working).
    """
    path = Path(path)
    if not path.exists():
        log.warning("Knowledge base not found at %s; local KB disabled", path)
        return KnowledgeBase()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        log.warning("Could not load knowledge base %s: %s; local KB disabled", path, exc)
        return KnowledgeBase()

    if not isinstance(data, dict):
        log.warning("Knowledge base %s is not a JSON object; local KB disabled", path)
        return KnowledgeBase()
    try:
        kb = KnowledgeBase.from_dict(data)
    except (TypeError, ValueError, AttributeError) as exc:
        log.warning("Invalid knowledge base %s: %s; local KB disabled", path, exc)
        return KnowledgeBase()
    log.info(
        "Loaded KB for %s: %d professors, %d courses, %d deadlines, %d faq, %d majors",
        kb.school.name,
        len(kb.professors),
        len(kb.courses),
        len(kb.deadlines),
        len(kb.faq),
        len(kb.majors),
    )
    log.info("Valid course codes: %s", ", ".join(sorted(kb.valid_codes)))
    return kb
