"""Tests for the command-line entry point."""
from __future__ import annotations

import json

from protocolkb.__main__ import main
from protocolkb.index.search_index import SearchIndex

from conftest import CORPUS_DIR

CORPUS = str(CORPUS_DIR)


def test_help_and_unknown_command(capsys):
    assert main([]) == 0
    assert "Usage: python -m protocolkb" in capsys.readouterr().out
    assert main(["frobnicate"]) == 0
    assert "Unknown command: frobnicate" in capsys.readouterr().out


def test_validate_ok_and_strict(capsys):
    assert main(["validate", CORPUS]) == 0
    out = capsys.readouterr().out
    assert "OK: corpus is publishable" in out
    assert "dangling_reference" in out

    assert main(["validate", CORPUS, "--strict"]) == 1
    assert "FAIL" in capsys.readouterr().out


def test_validate_writes_failure_log(tmp_path, capsys):
    log_path = tmp_path / "failures.jsonl"
    main(["validate", CORPUS, "--log", str(log_path)])
    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["detection_source"] == "cli"


def test_validate_with_questions(tmp_path, capsys):
    quiz = tmp_path / "quiz.json"
    quiz.write_text(json.dumps([{
        "id": "q1", "protocolId": "gopher", "question": "?",
        "options": ["a", "b"], "correctAnswer": 0, "explanation": "a",
    }]), encoding="utf-8")
    assert main(["validate", CORPUS, "--questions", str(quiz)]) == 1
    assert "protocolId 'gopher'" in capsys.readouterr().out


def test_validate_logs_question_problems_as_quiz(tmp_path, capsys):
    from protocolkb.governance.failure_log import FailureLog

    quiz = tmp_path / "quiz.json"
    quiz.write_text(json.dumps([{
        "id": "q1", "protocolId": "gopher", "question": "?",
        "options": ["a", "b"], "correctAnswer": 0, "explanation": "a",
    }]), encoding="utf-8")
    log_path = tmp_path / "failures.jsonl"
    main(["validate", CORPUS, "--questions", str(quiz), "--log", str(log_path)])

    entries = FailureLog(log_path).read_all()
    components = {(e.protocol_id, e.code): e.component for e in entries}
    assert components[("https", "dangling_reference")] == "references"
    assert components[("q1", "dangling_reference")] == "quiz"
    assert {e.component for e in entries if e.protocol_id == "q1"} == {"quiz"}


def test_search(capsys):
    assert main(["search", CORPUS, "kerberos", "ticket"]) == 0
    out = capsys.readouterr().out
    assert "2 match(es)" in out
    assert out.index("kerberos") < out.index("ldap")


def test_search_bad_facet(capsys):
    assert main(["search", CORPUS, "--category", "Cooking"]) == 2
    assert "Unknown category" in capsys.readouterr().out


def test_related(capsys):
    assert main(["related", CORPUS, "https"]) == 0
    out = capsys.readouterr().out
    assert "unresolved: http2" in out
    assert main(["related", CORPUS, "gopher"]) == 1


def test_quiz_is_reproducible_with_seed(capsys):
    assert main(["quiz", CORPUS, "tcp", "--count", "2", "--seed", "4"]) == 0
    first = capsys.readouterr().out
    main(["quiz", CORPUS, "tcp", "--count", "2", "--seed", "4"])
    assert capsys.readouterr().out == first
    assert "Status: OK" in first


def test_paths(capsys):
    assert main(["paths", CORPUS]) == 0
    assert "Security Protocols (3)" in capsys.readouterr().out


def test_report_and_export_index(tmp_path, capsys):
    text_path = tmp_path / "report.txt"
    assert main(["report", CORPUS, "--text", str(text_path)]) == 0
    assert "INTEGRITY REPORT" in text_path.read_text(encoding="utf-8")

    index_path = tmp_path / "index.json"
    assert main(["export-index", CORPUS, str(index_path)]) == 0
    index = SearchIndex.from_dict(json.loads(index_path.read_text(encoding="utf-8")))
    assert len(index) == 10
