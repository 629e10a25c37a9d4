# chatbot/hits.py

"""
Typed search results.

A hit is one of six variants. Each carries a relevance score and its own
payload, and knows how to render itself as a context snippet for the LLM.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, List, Optional, Union

from campusbot.chatbot.knowledge import Course, Deadline, Faq, Major, Professor


@dataclass
class RankedProfessor:
    """Ranking entry joined with the professor record (or web-search guesses)."""

    name: str
    department: str = "(dept)"
    rating: Optional[float] = None
    num_ratings: Optional[int] = None
    rmp_url: str = ""
    courses: List[str] = field(default_factory=list)
    review_or_notes: str = ""


def _rating_suffix(rating: Optional[float], num_ratings: Optional[int]) -> str:
    return f" ({num_ratings} ratings)" if rating is not None and num_ratings else ""


@dataclass
class DeadlineHit:
    score: float
    deadline: Deadline
    type: ClassVar[str] = "deadline"

    def render(self) -> str:
        d = self.deadline
        when = f"{d.date} {d.time}" if d.time else d.date
        out = f"🗓️ {d.term} - {d.category}\n• {d.description}\n• Date: {when}"
        if d.notes:
            out += f"\n• Notes: {d.notes}"
        return out


@dataclass
class ProfessorHit:
    score: float
    professor: Professor
    type: ClassVar[str] = "professor"

    def render(self) -> str:
        p = self.professor
        rating = p.rating if p.rating is not None else "N/A"
        out = f"👩‍🏫 {p.name} - {p.department}\n• Rating: {rating}"
        if p.num_ratings:
            out += f" ({p.num_ratings} ratings)"
        if p.courses:
            out += f"\n• Teaches: {', '.join(p.courses)}"
        if p.rmp_url:
            out += f"\n• RMP: {p.rmp_url}"
        return out


@dataclass
class CourseHit:
    score: float
    course: Course
    type: ClassVar[str] = "course"

    def render(self) -> str:
        c = self.course
        out = f"📘 {c.code}: {c.title}\n• Dept: {c.department}"
        if c.description:
            out += f"\n• About: {c.description}"
        if c.notes:
            out += f"\n• Notes: {c.notes}"
        return out


@dataclass
class FaqHit:
    score: float
    faq: Faq
    type: ClassVar[str] = "faq"

    def render(self) -> str:
        return f"❓ {self.faq.q}\n✅ {self.faq.a}"


@dataclass
class RankingHit:
    score: float
    course: str
    prof: RankedProfessor
    tags: List[str] = field(default_factory=list)
    rank: Optional[int] = None
    type: ClassVar[str] = "ranking"

    def render(self) -> str:
        p = self.prof
        rank_label = f"#{self.rank} " if self.rank is not None else ""
        lines = [
            f"🏆 {rank_label}{p.name} - {p.department}",
            f"• Course: {self.course}",
            f"• Tag: {', '.join(self.tags) or 'ranked'}",
        ]
        if p.rating is not None:
            lines.append(f"• Rating: {p.rating}{_rating_suffix(p.rating, p.num_ratings)}")
        if p.courses:
            lines.append(f"• Teaches: {', '.join(p.courses)}")
        if p.review_or_notes:
            lines.append(f"• Notes: {p.review_or_notes}")
        if p.rmp_url:
            lines.append(f"• RMP: {p.rmp_url}")
        return "\n".join(lines)


@dataclass
class MajorHit:
    score: float
    major: Major
    type: ClassVar[str] = "major"

    def render(self) -> str:
        m = self.major
        lower = "\n".join(f"• {x}" for x in m.lower_division) or "-"
        upper = "\n".join(f"• {x}" for x in m.upper_division) or "-"
        out = (
            f"🎓 {m.campus} - {m.program}\n\n"
            "**Lower Division (community college prep, articulates to UC upper-division):**\n"
            f"{lower}\n\n"
            f"**Upper Division (completed at {m.campus} after transfer):**\n"
            f"{upper}"
        )
        if m.notes:
            out += f"\n📝 Notes: {m.notes}"
        if m.source_url:
            out += f"\n🔗 Source: {m.source_url}"
        return out


Hit = Union[DeadlineHit, ProfessorHit, CourseHit, FaqHit, RankingHit, MajorHit]


def record_hit(kind: str, record, score: float) -> Hit:
    """Wrap a KB record of the given kind in its hit variant."""
    if kind == "deadline":
        return DeadlineHit(score=score, deadline=record)
    if kind == "professor":
        return ProfessorHit(score=score, professor=record)
    if kind == "course":
        return CourseHit(score=score, course=record)
    if kind == "faq":
        return FaqHit(score=score, faq=record)
    if kind == "major":
        return MajorHit(score=score, major=record)
    raise ValueError(f"unknown record kind: {kind}")
