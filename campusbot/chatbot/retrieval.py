# chatbot/retrieval.py

"""
Retrieval pipeline over the local KB, the embedding index and web search.

A query runs through an ordered list of strategies. Each strategy either
returns a list of hits (the pipeline stops there) or None (try the next one):

    1. professor mentioned by name
    2. ranking list for "best / easiest ... professor for <course>"
    3. semantic search (embeddings)
    4. keyword scoring, hard-filtered to professors teaching the course
    5. major requirements (UC data-science transfer questions)
    6. web search for professor names
    7. keyword scoring, unfiltered top hits

Strategies 1 and 2 also update the conversation's SessionState.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional
import asyncio
import logging
import re

import openai

from campusbot.chatbot.courses import canonicalize, resolve_course_codes
from campusbot.chatbot.embeddings import EmbeddingError, EmbeddingIndex
from campusbot.chatbot.hits import (
    CourseHit,
    DeadlineHit,
    FaqHit,
    Hit,
    MajorHit,
    ProfessorHit,
    RankedProfessor,
    RankingHit,
    record_hit,
)
from campusbot.chatbot.intent import (
    RankRequest,
    asks_best_professor,
    asks_professor_ranking,
    extract_campus_hint,
    extract_dept_hint,
    is_major_req_query,
    last_name,
    parse_rank_intent,
)
from campusbot.chatbot.intent_schema import PROFESSOR_HITS
from campusbot.chatbot.knowledge import Faq, KnowledgeBase, Professor
from campusbot.chatbot.session import SessionState
from campusbot.chatbot.websearch import (
    SearchResult,
    WebSearchClient,
    extract_name_school,
    looks_like_same_school,
    names_in_title,
    school_host,
)

log = logging.getLogger("chatbot.retrieval")

# keyword bonuses
COURSE_TAUGHT_BONUS = 8
DEPT_MATCH_BONUS = 3
NOT_TEACHING_PENALTY = 4
COURSE_CODE_BONUS = 6
PREFIX_BONUS = 2

# major matching
CAMPUS_MATCH_BONUS = 10
DATA_SCIENCE_BONUS = 4
DATA_THEORY_BONUS = 2
MAJOR_WORD_BONUS = 0.3
CAMPUS_SYNONYMS = {
    "ucsd": "uc san diego",
    "ucla": "ucla",
    "ucsb": "uc santa barbara",
    "uci": "uc irvine",
    "ucd": "uc davis",
    "ucsc": "uc santa cruz",
    "ucr": "uc riverside",
    "ucm": "uc merced",
}

# web fallback scores
RMP_SCORE = 92
SCHOOL_SITE_SCORE = 85
LINKS_CARD_SCORE = 80
SCHOOL_SITE_QUERIES = ("instructor", "syllabus", "schedule", "department")


@dataclass
class QueryContext:
    """Everything derived from the raw query text, computed once."""

    text: str
    session: SessionState
    codes: List[str]
    dept_hint: Optional[str]
    rank: RankRequest
    keyword_hits: List[Hit] = field(default_factory=list)

    @property
    def lowered(self) -> str:
        return self.text.lower()

    @property
    def query_words(self) -> List[str]:
        return [w for w in re.split(r"\W+", self.lowered) if w]


def keyword_score(ctx: QueryContext, text: str) -> int:
    q = ctx.lowered
    t = (text or "").lower()
    if not q or not t:
        return 0
    score = sum(1 for w in ctx.query_words if w in t)
    if t.startswith(q):
        score += PREFIX_BONUS
    return score


def teaches_any(professor: Professor, codes: List[str]) -> bool:
    taught = {canonicalize(c) for c in professor.courses}
    return any(code in taught for code in codes)


def professor_bonus(p: Professor, codes: List[str], dept_hint: Optional[str]) -> int:
    taught = {canonicalize(c) for c in p.courses}
    bonus = sum(COURSE_TAUGHT_BONUS for code in codes if code in taught)
    if dept_hint and (p.department or "").lower() == dept_hint:
        bonus += DEPT_MATCH_BONUS
    if codes and not any(code in taught for code in codes):
        bonus -= NOT_TEACHING_PENALTY
    return bonus


def _deadline_blob(d) -> str:
    return f"{d.term} {d.category} {d.description} {d.date} {d.time or ''} {d.notes or ''} {' '.join(d.keywords)}"


def _professor_blob(p: Professor) -> str:
    rating = p.rating if p.rating is not None else ""
    return f"{p.name} {p.department} {' '.join(p.courses)} {rating} {p.reviews}"


def _course_blob(c) -> str:
    return f"{c.code} {c.title} {c.department} {c.description or ''} {c.notes or ''}"


def _faq_blob(f: Faq) -> str:
    return f"{f.q} {f.a} {' '.join(f.keywords)}"


def _major_blob(m) -> str:
    return " ".join(
        [m.program, " ".join(m.aliases), " ".join(m.lower_division), " ".join(m.upper_division)]
    ).lower()


def rank_keyword_hits(hits: List[Hit], professors_first: bool) -> List[Hit]:
    if professors_first:
        return sorted(hits, key=lambda h: (0 if h.type == "professor" else 1, -h.score))
    return sorted(hits, key=lambda h: -h.score)


Strategy = Callable[[QueryContext], Awaitable[Optional[List[Hit]]]]


class Retriever:
    def __init__(
        self,
        kb: KnowledgeBase,
        index: Optional[EmbeddingIndex] = None,
        embedder=None,
        web: Optional[WebSearchClient] = None,
        min_similarity: float = 0.78,
        max_hits: int = 3,
        ratings_site: str = "ratemyprofessors.com",
        default_school_host: str = "deanza.edu",
    ) -> None:
        self.kb = kb
        self.index = index or EmbeddingIndex()
        self.embedder = embedder
        self.web = web
        self.min_similarity = min_similarity
        self.max_hits = max_hits
        self.ratings_site = ratings_site
        self.default_school_host = default_school_host

        self.strategies: List[Strategy] = [
            self.professor_mention,
            self.ranking_lookup,
            self.semantic,
            self.keyword_for_course,
            self.major_match,
            self.web_fallback,
            self.keyword_fallback,
        ]

    # ---------------------------
    # entry point
    # ---------------------------

    def prepare(self, text: str, session: SessionState) -> QueryContext:
        ctx = QueryContext(
            text=text or "",
            session=session,
            codes=resolve_course_codes(text or "", self.kb.valid_codes),
            dept_hint=extract_dept_hint(text or ""),
            rank=parse_rank_intent(text or ""),
        )
        ctx.keyword_hits = self.keyword_hits(ctx)
        return ctx

    async def search(self, text: str, session: SessionState) -> List[Hit]:
        ctx = self.prepare(text, session)
        log.info("course codes in query: %s", ctx.codes)
        for strategy in self.strategies:
            hits = await strategy(ctx)
            if hits is not None:
                log.info("%s -> %d hit(s)", strategy.__name__, len(hits))
                return hits[: self.max_hits]
        return []

    # ---------------------------
    # 1) professor named in the query
    # ---------------------------

    async def professor_mention(self, ctx: QueryContext) -> Optional[List[Hit]]:
        q = ctx.lowered
        named = [p for p in self.kb.professors if p.name]

        exact = [p for p in named if p.name.lower() in q]
        if exact:
            ctx.session.last_professor = exact[0].name
            return [ProfessorHit(score=100, professor=p) for p in exact]

        tokens = q.split()
        by_last = [p for p in named if last_name(p.name) in tokens]
        if by_last:
            ctx.session.last_professor = by_last[0].name
            return [ProfessorHit(score=90, professor=p) for p in by_last]
        return None

    # ---------------------------
    # 2) curated ranking list
    # ---------------------------

    def ranked_professor(self, entry, code: str) -> RankedProfessor:
        prof = self.kb.find_professor(entry.name)
        if prof is None:
            return RankedProfessor(name=entry.name, courses=[code], review_or_notes=entry.notes or "")
        return RankedProfessor(
            name=entry.name,
            department=prof.department or "(dept)",
            rating=prof.rating,
            num_ratings=prof.num_ratings,
            rmp_url=prof.rmp_url,
            courses=list(prof.courses) or [code],
            review_or_notes=entry.notes or prof.reviews or "",
        )

    async def ranking_lookup(self, ctx: QueryContext) -> Optional[List[Hit]]:
        if not ctx.rank.asked or not ctx.codes:
            return None

        code = ctx.codes[0]
        ranked = self.kb.ranked(code)
        wanted = set(ctx.rank.tags)
        matches = [r for r in ranked if wanted & set(r.tags)] if wanted else ranked
        chosen = (matches or ranked)[:3]

        # remembered even without rankings, so a later "class is full" knows the course
        ctx.session.last_course = code
        ctx.session.rank_cursor[code] = 0

        if not chosen:
            return None
        if chosen[0].name:
            ctx.session.last_professor = chosen[0].name

        hits: List[Hit] = [
            RankingHit(
                score=100 - (r.rank or 99) * 2,
                course=code,
                prof=self.ranked_professor(r, code),
                tags=list(r.tags),
                rank=r.rank,
            )
            for r in chosen
        ]
        course = self.kb.find_course(code)
        if course is not None:
            hits.append(CourseHit(score=0, course=course))
        return hits

    # ---------------------------
    # 3) semantic search
    # ---------------------------

    async def semantic(self, ctx: QueryContext) -> Optional[List[Hit]]:
        if self.embedder is None or not len(self.index):
            return None
        try:
            query_vec = await self.embedder.embed(ctx.text)
            nearest = self.index.nearest(query_vec, self.min_similarity, top_k=3)
        except (EmbeddingError, openai.OpenAIError, ValueError) as exc:
            log.warning("Embedding search failed: %s", exc)
            return None

        if not nearest:
            return None
        log.info("embedding hits: %s", [(it.kind, round(sim, 3)) for it, sim in nearest])
        return [record_hit(it.kind, it.record, round(100 * sim)) for it, sim in nearest]

    # ---------------------------
    # 4) keyword scoring
    # ---------------------------

    def keyword_hits(self, ctx: QueryContext) -> List[Hit]:
        hits: List[Hit] = []

        for d in self.kb.deadlines:
            s = keyword_score(ctx, _deadline_blob(d))
            if s > 0:
                hits.append(DeadlineHit(score=s, deadline=d))

        for p in self.kb.professors:
            s = keyword_score(ctx, _professor_blob(p)) + professor_bonus(p, ctx.codes, ctx.dept_hint)
            if s > 0:
                hits.append(ProfessorHit(score=s, professor=p))

        for c in self.kb.courses:
            s = keyword_score(ctx, _course_blob(c))
            s += sum(COURSE_CODE_BONUS for code in ctx.codes if canonicalize(c.code) == code)
            if s > 0:
                hits.append(CourseHit(score=s, course=c))

        for f in self.kb.faq:
            s = keyword_score(ctx, _faq_blob(f))
            if s > 0:
                hits.append(FaqHit(score=s, faq=f))

        return rank_keyword_hits(hits, self._wants_best_for_course(ctx))

    def _wants_best_for_course(self, ctx: QueryContext) -> bool:
        return asks_best_professor(ctx.text) and bool(ctx.codes)

    async def keyword_for_course(self, ctx: QueryContext) -> Optional[List[Hit]]:
        """'best professor for CIS 22B': only professors who teach it, plus one course card."""
        if not self._wants_best_for_course(ctx):
            return None
        teaching = [
            h for h in ctx.keyword_hits if isinstance(h, ProfessorHit) and teaches_any(h.professor, ctx.codes)
        ]
        if not teaching:
            return None
        out: List[Hit] = teaching[:2]
        card = next((h for h in ctx.keyword_hits if isinstance(h, CourseHit)), None)
        if card is not None:
            out.append(card)
        return out

    # ---------------------------
    # 5) majors
    # ---------------------------

    async def major_match(self, ctx: QueryContext) -> Optional[List[Hit]]:
        if not self.kb.majors or not is_major_req_query(ctx.text):
            return None

        q = ctx.lowered
        campus_hint = extract_campus_hint(q)
        hits: List[Hit] = []
        for m in self.kb.majors:
            campus = (m.campus or "").lower()
            score = 0.0
            if campus_hint and campus_hint in campus:
                score += CAMPUS_MATCH_BONUS
            for abbr, full in CAMPUS_SYNONYMS.items():
                if re.search(rf"\b{abbr}\b", q) and campus == full:
                    score += CAMPUS_MATCH_BONUS

            blob = _major_blob(m)
            if re.search(r"\bdata\s*science\b", blob):
                score += DATA_SCIENCE_BONUS
            if re.search(r"\bdata\s*theory\b", blob):
                score += DATA_THEORY_BONUS
            score += MAJOR_WORD_BONUS * sum(1 for w in ctx.query_words if w in blob)

            if score > 0:
                hits.append(MajorHit(score=score, major=m))

        if not hits:
            return None
        hits.sort(key=lambda h: -h.score)
        return hits[:3]

    # ---------------------------
    # 6) web fallback
    # ---------------------------

    async def web_fallback(self, ctx: QueryContext) -> Optional[List[Hit]]:
        if self.web is None or not asks_professor_ranking(ctx.text):
            return None
        if any(h.type in PROFESSOR_HITS for h in ctx.keyword_hits):
            return None

        course = ctx.codes[0] if ctx.codes else ""
        school = self.kb.school.name if self.kb.school.name != "Unknown" else ""
        q_web = " ".join(part for part in (course, school) if part)
        host = school_host(self.kb.school.website, self.default_school_host)

        rmp_results, *site_batches = await asyncio.gather(
            self.web.search(f"{q_web} Rate My Professors", site=self.ratings_site, num=10),
            *(self.web.search(f"{q_web} {suffix}", site=host, num=5) for suffix in SCHOOL_SITE_QUERIES),
        )
        school_results = [r for batch in site_batches for r in batch]

        candidates = web_candidates(rmp_results, school_results, school)
        if candidates:
            return [
                RankingHit(
                    score=RMP_SCORE if source == "rmp" else SCHOOL_SITE_SCORE,
                    course=course or "(unknown course)",
                    prof=RankedProfessor(
                        name=name,
                        department="(unknown)",
                        rmp_url=url if source == "rmp" else "",
                        courses=[course] if course else [],
                    ),
                    tags=["web_result"],
                )
                for name, source, url in candidates[:3]
            ]

        links = (list(rmp_results) + school_results)[:5]
        if links:
            summary = "\n".join(
                f"{i}. {r.title}\n   {r.link}\n   {r.snippet}" for i, r in enumerate(links, start=1)
            )
            return [FaqHit(score=LINKS_CARD_SCORE, faq=Faq(q=f"Web results for {course or 'the course'}", a=summary))]
        return None

    # ---------------------------
    # 7) whatever keyword scoring found
    # ---------------------------

    async def keyword_fallback(self, ctx: QueryContext) -> Optional[List[Hit]]:
        return ctx.keyword_hits[: self.max_hits]


def web_candidates(
    rmp_results: List[SearchResult],
    school_results: List[SearchResult],
    school: str,
) -> List[tuple]:
    """
    (name, source, url) guesses from search result titles, deduplicated by
    lowercased name with the first occurrence kept.
    """
    found = []
    for r in rmp_results:
        parsed = extract_name_school(r.title)
        if parsed and looks_like_same_school(parsed[1], school):
            found.append((parsed[0], "rmp", r.link))
    for r in school_results:
        for name in names_in_title(r.title):
            found.append((name, "school", r.link))

    seen = set()
    unique = []
    for name, source, url in found:
        key = name.lower()
        if key not in seen:
            seen.add(key)
            unique.append((name, source, url))
    return unique
