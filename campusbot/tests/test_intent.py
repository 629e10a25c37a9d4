from campusbot.chatbot.intent import (
    detect_intent,
    extract_campus_hint,
    extract_dept_hint,
    is_major_req_query,
    parse_rank_intent,
)
from campusbot.chatbot.session import SessionState

from _fakes import dummy_kb

PROFS = dummy_kb().professors


def test_major_requirements_first():
    assert detect_intent("UCSD data science requirements", PROFS) == "major_requirements"
    assert detect_intent("what classes for data science?", PROFS) == "major_requirements"
    # data science alone is not enough
    assert is_major_req_query("is data science fun") is False


def test_ranking_beats_name_mention():
    # "lee" is a professor's last name, but ranking language wins
    assert detect_intent("best prof like lee for cis 22c", PROFS) == "prof_ranking"
    assert detect_intent("easiest professor for math 1a", PROFS) == "prof_ranking"


def test_prof_lookup():
    assert detect_intent("What do students say about Alice Chen?", PROFS) == "prof_lookup"
    assert detect_intent("is chen nice", PROFS) == "prof_lookup"


def test_other_intents():
    assert detect_intent("the class is full", PROFS) == "class_full"
    assert detect_intent("I'm on the waitlist", PROFS) == "class_full"
    assert detect_intent("where is the writing center", PROFS) == "tutoring"
    assert detect_intent("last day to drop?", PROFS) == "deadline"
    assert detect_intent("hello there", PROFS) == "generic"


def test_who_should_i_take_needs_active_course():
    assert detect_intent("who should I take", PROFS) == "generic"
    session = SessionState(last_course="MATH 1A")
    assert detect_intent("who should I take", PROFS, session) == "class_full"


def test_rank_tags():
    assert parse_rank_intent("best professor for math 1a").tags == ["best_overall"]
    assert parse_rank_intent("second best prof").tags == ["second_best"]
    assert parse_rank_intent("easiest professor").tags == ["easiest"]
    req = parse_rank_intent("who is the best teacher, and the easiest?")
    assert req.tags == ["easiest", "best_teaching"]
    assert req.asked is True
    assert parse_rank_intent("how do I add a class").asked is False


def test_hints():
    assert extract_campus_hint("transfer to ucsd") == "uc san diego"
    assert extract_campus_hint("Santa Barbara data science") == "uc santa barbara"
    assert extract_campus_hint("my local college") is None
    assert extract_dept_hint("math help") == "mathematics"
    assert extract_dept_hint("cis 22b") == "computer science"
    assert extract_dept_hint("physics lab") == "physics"
