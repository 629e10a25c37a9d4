import asyncio

from campusbot.chatbot.embeddings import EmbeddingIndex
from campusbot.chatbot.hits import FaqHit, MajorHit, ProfessorHit, RankingHit
from campusbot.chatbot.knowledge import KnowledgeBase
from campusbot.chatbot.retrieval import Retriever
from campusbot.chatbot.session import SessionState

from _fakes import FakeEmbedder, FakeWeb, dummy_kb, result


def _empty_school_kb():
    return KnowledgeBase.from_dict({"school": {"name": "De Anza College", "website": "https://www.deanza.edu/"}})


def _run(retriever, text, session=None):
    session = session or SessionState()
    return asyncio.run(retriever.search(text, session)), session


def test_full_name_mention():
    hits, session = _run(Retriever(dummy_kb()), "Tell me about Alice Chen")
    assert len(hits) == 1
    assert isinstance(hits[0], ProfessorHit) and hits[0].score == 100
    assert hits[0].professor.courses == ["CIS 22A", "CIS 22B"]
    assert session.last_professor == "Alice Chen"


def test_last_name_mention():
    hits, session = _run(Retriever(dummy_kb()), "is lee strict")
    assert [(h.professor.name, h.score) for h in hits] == [("Marcus Lee", 90)]
    assert session.last_professor == "Marcus Lee"


def test_semantic_hits_respect_threshold():
    kb = dummy_kb()
    index = EmbeddingIndex()
    asyncio.run(index.build(kb, FakeEmbedder()))
    assert len(index) == len(kb.deadlines) + len(kb.professors) + len(kb.courses) + len(kb.faq) + len(kb.majors)

    hits, _ = _run(Retriever(kb, index=index, embedder=FakeEmbedder()), "any tutoring available?")
    assert len(hits) == 1
    assert isinstance(hits[0], FaqHit)
    assert hits[0].score == 100


def test_semantic_nothing_close_enough_falls_through():
    kb = dummy_kb()
    index = EmbeddingIndex()
    asyncio.run(index.build(kb, FakeEmbedder()))
    # two vocabulary words -> best match is about 0.71
    query = FakeEmbedder().vector("calculus deadline")
    assert index.nearest(query, min_similarity=0.78) == []
    assert 0.70 < index.nearest(query, min_similarity=0.0)[0][1] < 0.78

    embedder = FakeEmbedder()
    hits, _ = _run(Retriever(kb, index=index, embedder=embedder), "calculus deadline")
    assert embedder.calls == 1
    # keyword scoring picked it up instead
    assert [(h.type, h.score) for h in hits] == [("course", 1)]


def test_embedding_failure_falls_back_to_keywords():
    kb = dummy_kb()
    index = EmbeddingIndex()
    asyncio.run(index.build(kb, FakeEmbedder()))
    embedder = FakeEmbedder(fail_queries=True)

    hits, _ = _run(Retriever(kb, index=index, embedder=embedder), "any tutoring available?")
    assert embedder.calls == 1
    assert [h.type for h in hits] == ["faq"]
    assert hits[0].score == 1


def test_major_matching_prefers_campus():
    hits, _ = _run(Retriever(dummy_kb()), "UCSD data science transfer requirements")
    assert len(hits) == 1
    assert isinstance(hits[0], MajorHit)
    assert hits[0].major.campus == "UC San Diego"
    assert hits[0].score > 20


def test_web_fallback_extracts_names():
    web = FakeWeb(
        rmp=[
            result("Jane Doe at De Anza College | Rate My Professors", "https://rmp.example/jane"),
            result("John Roe at Foothill College | Rate My Professors", "https://rmp.example/john"),
        ],
        school=[result("PHYS 4A Syllabus - Robert Smith", "https://www.deanza.edu/phys4a")],
    )
    hits, session = _run(Retriever(_empty_school_kb(), web=web), "best professor for PHYS 4A")

    assert all(isinstance(h, RankingHit) for h in hits)
    assert [(h.prof.name, h.score) for h in hits] == [("Jane Doe", 92), ("Robert Smith", 85)]
    assert hits[0].prof.rmp_url == "https://rmp.example/jane"
    assert hits[1].prof.rmp_url == ""
    assert hits[0].course == "PHYS 4A"
    assert hits[0].tags == ["web_result"]

    assert web.queries[0] == ("PHYS 4A De Anza College Rate My Professors", "ratemyprofessors.com", 10)
    assert {site for _, site, _ in web.queries[1:]} == {"www.deanza.edu"}
    assert len(web.queries) == 5
    assert session.last_course == "PHYS 4A"


def test_web_fallback_links_card_when_no_names():
    web = FakeWeb(school=[result("course catalog", "https://www.deanza.edu/catalog", "All classes")])
    hits, _ = _run(Retriever(_empty_school_kb(), web=web), "top professor for PHYS 4A")

    assert len(hits) == 1
    card = hits[0]
    assert isinstance(card, FaqHit) and card.score == 80
    assert card.faq.q == "Web results for PHYS 4A"
    assert card.faq.a.startswith("1. course catalog\n   https://www.deanza.edu/catalog")


def test_web_fallback_never_invents_names():
    hits, _ = _run(Retriever(_empty_school_kb(), web=FakeWeb()), "best professor for PHYS 4A")
    assert hits == []


def test_web_fallback_only_for_ranking_questions():
    web = FakeWeb(rmp=[result("Jane Doe at De Anza College | Rate My Professors")])
    hits, _ = _run(Retriever(_empty_school_kb(), web=web), "who teaches PHYS 4A")
    assert hits == []
    assert web.queries == []


def test_keyword_fallback_scores():
    hits, _ = _run(Retriever(dummy_kb()), "withdraw deadline")
    assert hits[0].type == "deadline"
    assert hits[0].deadline.category == "Withdraw"
