from dataclasses import dataclass, field
from typing import List, Optional
import logging

from campusbot.chatbot.config import Settings
from campusbot.chatbot.context import anti_fabrication_directive, build_snippets, filter_hits
from campusbot.chatbot.embeddings import EmbeddingIndex, OpenAIEmbedder
from campusbot.chatbot.hits import Hit
from campusbot.chatbot.intent import detect_intent
from campusbot.chatbot.knowledge import KnowledgeBase, load_knowledge_base, normalize_name
from campusbot.chatbot.llm_answer import ChatCompleter, CompletionError, build_messages
from campusbot.chatbot.retrieval import Retriever
from campusbot.chatbot.session import SessionState, SessionStore
from campusbot.chatbot.websearch import WebSearchClient

log = logging.getLogger("chatbot.actions")

FULL_CLASS_STEPS = (
    "If the class is full: join the waitlist (if offered), email the instructor for an add code, "
    "and check the add/drop deadline."
)


def next_best_handoff(kb: KnowledgeBase, session: SessionState) -> Optional[str]:
    """
    Deterministic "class is full, who else?" answer for the last discussed course.

    Walks the course's ranking list one name per call, starting after the
    professor last suggested (or after the cursor when that name is not in
    the list). Returns None when there is no course or no ranking list, so
    the caller falls back to the LLM.
    """
    course = session.last_course
    if not course:
        return None
    ranked = kb.ranked(course)
    if not ranked:
        return None

    next_index = session.rank_cursor.get(course, 0) + 1
    if session.last_professor:
        key = normalize_name(session.last_professor)
        names = [normalize_name(r.name) for r in ranked]
        if key in names:
            next_index = names.index(key) + 1

    if next_index >= len(ranked):
        add_date = kb.add_deadline_date() or "the add deadline"
        return (
            f"I've listed everyone I have for {course}. At this point: "
            f"join the waitlist (if offered), email the instructor for an add code, "
            f"and check {add_date}."
        )

    entry = ranked[next_index]
    prof = kb.find_professor(entry.name)
    session.rank_cursor[course] = next_index
    session.last_professor = entry.name

    rating = ""
    if prof is not None and prof.rating is not None:
        count = f", {prof.num_ratings} ratings" if prof.num_ratings else ""
        rating = f" (rating {prof.rating}{count})"
    department = prof.department if prof is not None and prof.department else "(dept)"
    notes = entry.notes or (prof.reviews if prof is not None else "")

    reply = f"Next best for {course} is **{entry.name}** - {department}{rating}."
    if notes:
        reply += f"\n• Notes: {notes}"
    if prof is not None and prof.rmp_url:
        reply += f"\n• RMP: {prof.rmp_url}"
    return reply + "\n\n" + FULL_CLASS_STEPS


@dataclass
class Answer:
    reply: str
    intent: str
    hits: List[Hit] = field(default_factory=list)
    mode: str = "llm"           # "handoff", "llm" or "llm_error"


class CampusAssistant:
    """One KB, its index and collaborators, and the per-conversation sessions."""

    def __init__(
        self,
        kb: KnowledgeBase,
        retriever: Retriever,
        completer: ChatCompleter,
        sessions: Optional[SessionStore] = None,
        embedder=None,
        max_snippets: int = 5,
        snippet_chars: int = 600,
    ) -> None:
        self.kb = kb
        self.retriever = retriever
        self.completer = completer
        self.sessions = sessions or SessionStore()
        self.embedder = embedder
        self.max_snippets = max_snippets
        self.snippet_chars = snippet_chars

    @property
    def index(self) -> EmbeddingIndex:
        return self.retriever.index

    @classmethod
    def from_settings(cls, settings: Settings) -> "CampusAssistant":
        kb = load_knowledge_base(settings.kb_path)
        embedder = None
        if settings.openai_api_key:
            embedder = OpenAIEmbedder(
                settings.openai_api_key,
                model=settings.embedding_model,
                timeout=settings.openai_timeout_secs,
            )
        web = WebSearchClient(settings.google_cse_key, settings.google_cse_cx, timeout=settings.web_timeout_secs)
        retriever = Retriever(
            kb,
            index=EmbeddingIndex(),
            embedder=embedder,
            web=web if web.enabled else None,
            min_similarity=settings.min_similarity,
            max_hits=settings.max_hits,
            ratings_site=settings.ratings_site,
            default_school_host=settings.default_school_host,
        )
        completer = ChatCompleter(
            settings.openai_api_key,
            model=settings.chat_model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.openai_timeout_secs,
        )
        return cls(
            kb,
            retriever,
            completer,
            embedder=embedder,
            max_snippets=settings.max_snippets,
            snippet_chars=settings.snippet_chars,
        )

    async def build_index(self) -> int:
        if self.embedder is None:
            log.warning("No embedding provider configured; semantic search disabled")
            return 0
        return await self.index.build(self.kb, self.embedder)

    async def answer(self, message: str, conversation_id: Optional[str] = None) -> Answer:
        message = (message or "").strip()
        log.info("User asked: %s", message)

        async with self.sessions.conversation(conversation_id) as session:
            hits = await self.retriever.search(message, session)
            intent = detect_intent(message, self.kb.professors, session)

            if intent == "class_full":
                handoff = next_best_handoff(self.kb, session)
                if handoff is not None:
                    return Answer(reply=handoff, intent=intent, hits=hits, mode="handoff")

        used = filter_hits(hits, intent)[: self.max_snippets]
        log.info("intent=%s hits=%d used=%d", intent, len(hits), len(used))

        messages = build_messages(
            message,
            intent,
            snippets=build_snippets(used, self.max_snippets, self.snippet_chars),
            anti_fabrication=anti_fabrication_directive(used, intent),
        )
        try:
            reply = await self.completer.complete(messages)
        except CompletionError as exc:
            log.error("OpenAI API error: %s", exc)
            return Answer(reply=f"Oops! API error: {exc}", intent=intent, hits=used, mode="llm_error")
        return Answer(reply=reply, intent=intent, hits=used, mode="llm")
