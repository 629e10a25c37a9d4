import asyncio

from campusbot.chatbot.actions import CampusAssistant, next_best_handoff
from campusbot.chatbot.config import Settings
from campusbot.chatbot.context import ANTI_FABRICATION
from campusbot.chatbot.embeddings import EmbeddingIndex
from campusbot.chatbot.knowledge import KnowledgeBase
from campusbot.chatbot.retrieval import Retriever
from campusbot.chatbot.session import SessionState

from _fakes import FakeCompleter, FakeEmbedder, dummy_kb, dummy_kb_data


def _assistant(completer=None):
    kb = dummy_kb()
    return CampusAssistant(kb, Retriever(kb), completer or FakeCompleter())


def _ask(assistant, message, conversation_id=None):
    return asyncio.run(assistant.answer(message, conversation_id))


# ---------------------------
# next-best handoff
# ---------------------------


def test_handoff_walks_ranking_then_exhausts():
    completer = FakeCompleter()
    bot = _assistant(completer)

    first = _ask(bot, "best professor for MATH 1A")
    assert first.intent == "prof_ranking"
    assert first.mode == "llm"

    second = _ask(bot, "the class is full")
    assert second.mode == "handoff"
    assert second.reply.startswith("Next best for MATH 1A is **Prof Y** - Mathematics (rating 4.2).")
    assert "Notes: Lenient grader." in second.reply
    assert "waitlist" in second.reply
    session = bot.sessions.get()
    assert session.rank_cursor["MATH 1A"] == 1
    assert session.last_professor == "Prof Y"

    third = _ask(bot, "still full")
    assert third.mode == "handoff"
    assert third.reply.startswith("I've listed everyone I have for MATH 1A.")
    assert "2025-10-12" in third.reply

    # only the first turn went to the model
    assert len(completer.calls) == 1


def test_handoff_uses_cursor_when_last_professor_unknown():
    kb = dummy_kb()
    session = SessionState(last_course="MATH 1A", last_professor="Somebody Else", rank_cursor={"MATH 1A": 0})
    reply = next_best_handoff(kb, session)
    assert "**Prof Y**" in reply
    assert "RMP:" not in reply
    assert session.rank_cursor["MATH 1A"] == 1
    assert session.last_professor == "Prof Y"


def test_handoff_formats_rating_and_rmp():
    data = dummy_kb_data()
    prof_y, prof_x = data["rankings"]["MATH 1A"]
    prof_y["rank"], prof_x["rank"] = 1, 2
    kb = KnowledgeBase.from_dict(data)
    session = SessionState(last_course="MATH 1A", last_professor="prof  y")
    reply = next_best_handoff(kb, session)
    assert reply.startswith("Next best for MATH 1A is **Prof X** - Mathematics (rating 4.7, 50 ratings).")
    assert "• Notes: Clear lectures." in reply
    assert "• RMP: https://rmp.example/x" in reply


def test_handoff_needs_course_and_ranking():
    kb = dummy_kb()
    assert next_best_handoff(kb, SessionState()) is None
    assert next_best_handoff(kb, SessionState(last_course="CIS 22C")) is None


def test_exhaustion_without_add_deadline():
    kb = dummy_kb()
    kb.deadlines.clear()
    session = SessionState(last_course="MATH 1A", last_professor="Prof Y")
    assert next_best_handoff(kb, session).endswith("and check the add deadline.")


def test_class_full_without_course_goes_to_llm():
    completer = FakeCompleter(reply="Try the waitlist.")
    answer = _ask(_assistant(completer), "my class is full")
    assert answer.intent == "class_full"
    assert answer.mode == "llm"
    assert answer.reply == "Try the waitlist."


# ---------------------------
# LLM path
# ---------------------------


def test_llm_messages_carry_intent_and_snippets():
    completer = FakeCompleter()
    answer = _ask(_assistant(completer), "where can I get tutoring?")
    assert answer.reply == "LLM says hi"
    assert answer.intent == "tutoring"
    assert all(h.type in {"faq", "course", "deadline"} for h in answer.hits)

    messages = completer.calls[0]
    assert messages[0]["role"] == "system"
    assert messages[-1] == {"role": "user", "content": "where can I get tutoring?"}
    contents = [m["content"] for m in messages]
    assert "Detected intent: tutoring" in contents
    context = next(c for c in contents if c.startswith("Context:"))
    assert "Snippet 1 [faq]" in context
    assert "STEM center" in context
    assert ANTI_FABRICATION not in contents


def test_ranking_without_professors_gets_anti_fabrication():
    completer = FakeCompleter()
    answer = _ask(_assistant(completer), "best professor for PHYS 4A")
    assert answer.intent == "prof_ranking"
    assert answer.hits == []
    assert ANTI_FABRICATION in [m["content"] for m in completer.calls[0]]


def test_completion_error_becomes_reply():
    answer = _ask(_assistant(FakeCompleter(error="rate limited")), "hello there")
    assert answer.reply == "Oops! API error: rate limited"
    assert answer.mode == "llm_error"


# ---------------------------
# sessions
# ---------------------------


def test_conversations_are_isolated():
    bot = _assistant()
    _ask(bot, "best professor for MATH 1A", conversation_id="a")

    other = _ask(bot, "the class is full", conversation_id="b")
    assert other.mode == "llm"
    assert bot.sessions.get("b").last_course is None

    same = _ask(bot, "the class is full", conversation_id="a")
    assert same.mode == "handoff"
    assert "**Prof Y**" in same.reply
    assert len(bot.sessions) == 2


def test_from_settings_without_keys(tmp_path):
    settings = Settings(kb_path=tmp_path / "missing.json")
    bot = CampusAssistant.from_settings(settings)
    assert bot.embedder is None
    assert bot.retriever.web is None
    assert bot.kb.professors == []
    assert asyncio.run(bot.build_index()) == 0
    answer = _ask(bot, "hello")
    assert answer.mode == "llm_error"
    assert answer.reply.startswith("Oops! API error:")


class _GateEmbedder(FakeEmbedder):
    """Each query waits until a second query is also being embedded."""

    def __init__(self):
        super().__init__()
        self.both_waiting = None

    async def embed(self, text):
        if self.both_waiting is None:
            self.both_waiting = asyncio.Event()
        self.calls += 1
        if self.calls == 2:
            self.both_waiting.set()
        await asyncio.wait_for(self.both_waiting.wait(), timeout=2)
        return self.vector(text)


def test_default_conversation_requests_run_concurrently():
    kb = dummy_kb()
    index = EmbeddingIndex()
    asyncio.run(index.build(kb, FakeEmbedder()))

    async def two_anonymous_requests():
        embedder = _GateEmbedder()
        bot = CampusAssistant(kb, Retriever(kb, index=index, embedder=embedder), FakeCompleter())
        return await asyncio.gather(bot.answer("any tutoring?"), bot.answer("when is the withdraw deadline?"))

    # a serialized store would leave the first query waiting until the timeout
    answers = asyncio.run(two_anonymous_requests())
    assert [a.mode for a in answers] == ["llm", "llm"]
    assert [a.intent for a in answers] == ["tutoring", "deadline"]
