import json

from campusbot.chatbot.knowledge import KnowledgeBase, load_knowledge_base, merge_professors

from _fakes import dummy_kb, dummy_kb_data


def test_merge_duplicate_professors():
    profs = merge_professors(
        [
            {"name": "Dr. Alice Chen", "department": "CS", "rating": 4.0, "courses": ["CIS 22A"]},
            {"name": "  dr. alice   CHEN ", "rating": 4.5, "courses": ["CIS 22B", "CIS 22A"]},
        ]
    )
    assert len(profs) == 1
    p = profs[0]
    assert p.name == "Dr. Alice Chen"
    assert set(p.courses) == {"CIS 22A", "CIS 22B"}
    # later fields win, missing ones are kept
    assert p.rating == 4.5
    assert p.department == "CS"


def test_nameless_professors_dropped():
    assert merge_professors([{"name": ""}, {"department": "Math"}]) == []


def test_codes_and_rankings_canonical():
    kb = dummy_kb()
    assert kb.find_course("CIS 22B").title == "Intermediate Programming"
    assert kb.valid_codes == {"MATH 1A", "CIS 22B", "CIS 22C"}
    assert [r.name for r in kb.ranked("math 1a")] == ["Prof X", "Prof Y"]
    assert kb.ranked("CIS 22B") == []


def test_missing_rank_sorts_last():
    kb = KnowledgeBase.from_dict(
        {"rankings": {"PHYS 4A": [{"name": "No Rank"}, {"name": "Ranked", "rank": 5}]}}
    )
    assert [r.name for r in kb.ranked("PHYS 4A")] == ["Ranked", "No Rank"]
    assert "PHYS 4A" in kb.valid_codes


def test_add_deadline_lookup():
    assert dummy_kb().add_deadline_date() == "2025-10-12"
    assert KnowledgeBase().add_deadline_date() is None


def test_load_from_file(tmp_path):
    path = tmp_path / "school.json"
    path.write_text(json.dumps(dummy_kb_data()), encoding="utf-8")
    kb = load_knowledge_base(path)
    assert kb.school.name == "De Anza College"
    assert len(kb.professors) == 4


def test_missing_or_broken_file_gives_empty_kb(tmp_path):
    kb = load_knowledge_base(tmp_path / "nope.json")
    assert kb.professors == [] and kb.valid_codes == set()

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert load_knowledge_base(bad).courses == []


def test_non_numeric_fields_become_none():
    kb = KnowledgeBase.from_dict(
        {
            "professors": [
                {"name": "Prof Z", "rating": "N/A", "num_ratings": "lots", "courses": ["MATH 1A"]},
                {"name": "Prof W", "rating": "4.1", "num_ratings": "12"},
            ],
            "rankings": {"MATH 1A": [{"name": "Prof Z", "rank": "N/A"}, {"name": "Prof W", "rank": "2"}]},
        }
    )
    z = kb.find_professor("prof z")
    assert z.rating is None and z.num_ratings is None
    assert z.courses == ["MATH 1A"]
    w = kb.find_professor("Prof W")
    assert (w.rating, w.num_ratings) == (4.1, 12)
    assert [(r.name, r.rank) for r in kb.ranked("MATH 1A")] == [("Prof W", 2), ("Prof Z", None)]


def test_malformed_records_skipped():
    kb = KnowledgeBase.from_dict(
        {
            "school": "De Anza",
            "deadlines": "soon",
            "professors": ["Prof X", {"name": "Prof Y"}, None],
            "courses": [{"code": "MATH 1A"}, 42],
            "faq": [["q", "a"]],
            "rankings": ["MATH 1A"],
        }
    )
    assert kb.school.name == "Unknown"
    assert kb.deadlines == [] and kb.faq == [] and kb.rankings == {}
    assert [p.name for p in kb.professors] == ["Prof Y"]
    assert kb.valid_codes == {"MATH 1A"}


def test_bad_values_in_file_still_load(tmp_path):
    data = dummy_kb_data()
    data["professors"][0]["rating"] = "N/A"
    data["courses"].append("CIS 22A")
    path = tmp_path / "school.json"
    path.write_text(json.dumps(data), encoding="utf-8")

    kb = load_knowledge_base(path)
    assert kb.find_professor("Prof X").rating is None
    assert len(kb.courses) == 3

    top_level_list = tmp_path / "list.json"
    top_level_list.write_text("[1, 2]", encoding="utf-8")
    assert load_knowledge_base(top_level_list).professors == []
