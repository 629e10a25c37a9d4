import json
import sys

import pytest

from campusbot.chatbot.main_cli import _split_explain
from campusbot.scripts import verify_kb

from _fakes import dummy_kb_data


def test_report_on_dummy_kb(tmp_path, monkeypatch, capsys):
    data = dummy_kb_data()
    data["rankings"]["PHYS 4A"] = [{"name": "Nobody Known", "rank": 1}]
    path = tmp_path / "school.json"
    path.write_text(json.dumps(data), encoding="utf-8")

    monkeypatch.setattr(sys, "argv", ["verify_kb", str(path)])
    verify_kb.main()
    out = capsys.readouterr().out

    assert "De Anza College" in out
    assert "professors: 5 rows" in out
    assert "5 professor records merged into 4" in out
    assert "CIS 22B" in out and "PHYS 4A" in out
    assert "not in professors: ['Nobody Known']" in out


def test_missing_file_exits(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["verify_kb", str(tmp_path / "nope.json")])
    with pytest.raises(SystemExit):
        verify_kb.main()


def test_explain_flag_stripped():
    assert _split_explain("best prof for cis 22b --explain") == ("best prof for cis 22b", True)
    assert _split_explain("hello") == ("hello", False)
