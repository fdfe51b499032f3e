"""Tests for the study library: loading, answering and persistence ordering."""
import json
import random

import pytest

from mcq_study.errors import PersistenceFailure
from mcq_study.library import StudyLibrary
from mcq_study.models import QuizConfig, Stats


@pytest.fixture
def question_file(tmp_path, sample_questions):
    f = tmp_path / "set1.json"
    f.write_text(json.dumps({"meta": {"title": "Sample"}, "questions": sample_questions}))
    return str(f)


@pytest.fixture
def library(db, question_file):
    lib = StudyLibrary(db)
    lib.load([question_file])
    return lib


def test_load_reports_counts(db, question_file, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"rows": []}))
    report = StudyLibrary(db).load([str(bad), question_file])
    assert report.question_count == 10
    assert report.files == ["set1.json"]
    assert [e.filename for e in report.rejected] == ["bad.json"]


def test_load_remembers_last_files(library, question_file):
    assert library.last_files() == [question_file]


def test_load_keeps_tree_when_setting_write_fails(db, question_file, monkeypatch):
    lib = StudyLibrary(db)

    def fail(*args, **kwargs):
        raise PersistenceFailure("settings locked")

    monkeypatch.setattr("mcq_study.library.set_setting", fail)
    report = lib.load([question_file])
    assert report.question_count == 10
    assert len(lib.engine.questions) == 10


def test_load_failure_leaves_previous_tree(library, question_file, monkeypatch):
    def fail():
        raise PersistenceFailure("disk gone")

    monkeypatch.setattr(library.db.progress, "get_all", fail)
    with pytest.raises(PersistenceFailure):
        library.load([question_file])
    assert len(library.engine.questions) == 10


def test_newer_load_supersedes_older(db, question_file, tmp_path, make_question):
    other = tmp_path / "other.json"
    other.write_text(json.dumps([make_question(100, "Other")]))
    lib = StudyLibrary(db)
    original_get_all = db.favorites.get_all
    reports = []

    def get_all_with_reentrant_load():
        db.favorites.get_all = original_get_all
        reports.append(lib.load([str(other)]))
        return original_get_all()

    db.favorites.get_all = get_all_with_reentrant_load
    first = lib.load([question_file])
    assert first is None
    assert reports[0].question_count == 1
    assert [q.id for q in lib.engine.questions] == [100]


def test_answer_persists_then_updates_tree(library, db):
    assert library.answer(1, 0) is True
    assert library.answer(2, 0) is False
    assert db.progress.get(("set1.json", "1"))["correct"] is True
    assert db.progress.get(("set1.json", "2"))["selected_option"] == 0
    assert library.engine.root_stats() == Stats(total=10, solved=2, correct=1)


def test_answer_unknown_question(library, db):
    assert library.answer(999, 0) is None
    assert db.progress.get_all() == []


def test_answer_write_failure_leaves_tree_unchanged(library, monkeypatch):
    def fail(record):
        raise PersistenceFailure("read-only")

    monkeypatch.setattr(library.db.progress, "put", fail)
    with pytest.raises(PersistenceFailure):
        library.answer(1, 0)
    assert not library.engine.get(1).solved


def test_toggle_favorite_round_trip(library, db):
    assert library.toggle_favorite(5) is True
    assert db.favorites.get("5") is not None
    assert library.toggle_favorite(5) is False
    assert db.favorites.get("5") is None
    assert library.toggle_favorite(404) is False


def test_toggle_favorite_write_failure_leaves_flag(library, monkeypatch):
    def fail(record):
        raise PersistenceFailure("read-only")

    monkeypatch.setattr(library.db.favorites, "put", fail)
    with pytest.raises(PersistenceFailure):
        library.toggle_favorite(5)
    assert not library.engine.get(5).favorite


def test_reset_deletes_progress(library, db):
    library.answer(1, 0)
    library.reset(1)
    assert db.progress.get(("set1.json", "1")) is None
    assert not library.engine.get(1).solved


def test_reload_restores_progress_without_reanswering(library, question_file):
    for qid in (1, 2, 3, 4):
        q = library.engine.get(qid)
        library.answer(qid, q.correct_option_id)
    for qid in (5, 6):
        q = library.engine.get(qid)
        library.answer(qid, (q.correct_option_id + 1) % 4)
    fresh = StudyLibrary(library.db)
    fresh.reload()
    stats = fresh.engine.root_stats()
    assert (stats.solved, stats.correct) == (6, 4)


def test_clear_progress_keeps_favorites(library, db):
    library.answer(1, 0)
    library.toggle_favorite(2)
    library.clear_progress()
    assert db.progress.get_all() == []
    assert library.engine.root_stats().solved == 0
    assert library.engine.get(2).favorite


def test_quiz_config_settings(library):
    assert library.quiz_config() == QuizConfig()
    library.save_quiz_config(QuizConfig(count=5, time_limit_minutes=10))
    assert library.quiz_config() == QuizConfig(count=5, time_limit_minutes=10)


def test_new_quiz_writes_through_library_store(library, db):
    session = library.new_quiz(rng=random.Random(2))
    session.configure("Term 2")
    questions = session.start(QuizConfig(count=2))
    for q in questions:
        session.answer(q.id, q.correct_option_id)
    result = session.submit()
    assert result.accuracy_pct == 100
    assert len(db.progress.get_all()) == 2
    assert library.engine.find_node(["Term 2"]).stats.correct == 2


def test_load_skips_undecodable_file(db, question_file, tmp_path):
    bad = tmp_path / "binary.json"
    bad.write_bytes(b"\xff\xfe\x00garbage")
    report = StudyLibrary(db).load([question_file, str(bad)])
    assert report.question_count == 10
    assert [e.filename for e in report.rejected] == ["binary.json"]


def test_load_accepts_yaml_with_dates(db, question_file, tmp_path):
    extra = tmp_path / "extra.yaml"
    extra.write_text(
        "meta:\n  created: 2024-01-01\nquestions:\n"
        "  - id: 1\n    question: Dated?\n    options: [Sure, Nope]\n    correct_option_id: 0\n"
    )
    lib = StudyLibrary(db)
    report = lib.load([question_file, str(extra)])
    assert report.question_count == 11
    assert report.rejected == []
    assert db.files.get("extra.yaml")["data"]["meta"]["created"] == "2024-01-01"


def test_load_skips_missing_file(db, question_file, tmp_path):
    report = StudyLibrary(db).load([str(tmp_path / "gone.json"), question_file])
    assert report.files == ["set1.json"]
    assert [e.filename for e in report.rejected] == ["gone.json"]


def test_clear_favorites_keeps_progress(library, db):
    library.answer(1, 0)
    library.toggle_favorite(2)
    library.clear_favorites()
    assert db.favorites.get_all() == []
    assert not library.engine.get(2).favorite
    assert library.engine.favorite_count == 0
    assert library.engine.get(1).solved


def test_clear_cache_forces_reread(library, db, question_file):
    assert db.files.get("set1.json") is not None
    library.clear_cache()
    assert db.files.get_all() == []
    library.reload()
    assert db.files.get("set1.json") is not None
    assert len(library.engine.questions) == 10
