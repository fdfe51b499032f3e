import json
import random
from unittest.mock import patch

import pytest

from mcq_study.app import (
    BrowseState, cmd_answer, cmd_browse, cmd_cd, cmd_favorite, cmd_load, cmd_quiz, cmd_settings, main,
    parse_args, render_tree, run_quiz_session, stats_badge,
)
from mcq_study.library import StudyLibrary
from mcq_study.models import QuizConfig, Stats
from mcq_study.quiz import QuizState
from mcq_study.selection import View


@pytest.fixture
def question_file(tmp_path, sample_questions):
    f = tmp_path / "set1.json"
    f.write_text(json.dumps(sample_questions))
    return str(f)


@pytest.fixture
def library(db, question_file):
    lib = StudyLibrary(db)
    lib.load([question_file])
    return lib


def test_stats_badge():
    assert stats_badge(Stats(total=10, solved=4, correct=3)) == "4/10 (75%)"


def test_render_tree_has_all_nodes(library):
    tree = render_tree(library.engine)
    assert [child.label.split(" [dim]")[0] for child in tree.children] == ["Term 1", "Term 2", "Uncategorized"]


def test_cmd_load_directory(db, tmp_path, sample_questions):
    qdir = tmp_path / "questions"
    qdir.mkdir()
    (qdir / "a.json").write_text(json.dumps(sample_questions[:3]))
    (qdir / "b.json").write_text(json.dumps({"questions": sample_questions[3:]}))
    lib = StudyLibrary(db)
    state = BrowseState(path=["old"])
    with patch("mcq_study.app.Prompt.ask", return_value=str(qdir)):
        cmd_load(lib, state)
    assert len(lib.engine.questions) == 10
    assert lib.engine.file_ids == ["a.json", "b.json"]
    assert state.path == []


def test_cmd_cd_navigation(library):
    state = BrowseState()
    with patch("mcq_study.app.Prompt.ask", return_value="Term 1/Math"):
        cmd_cd(library, state)
    assert state.path == ["Term 1", "Math"]
    with patch("mcq_study.app.Prompt.ask", return_value=".."):
        cmd_cd(library, state)
    assert state.path == ["Term 1"]
    with patch("mcq_study.app.Prompt.ask", return_value="/"):
        cmd_cd(library, state)
    assert state.path == []


def test_cmd_answer_records_progress(library, db):
    with patch("mcq_study.app.Prompt.ask", side_effect=["1", "a"]):
        cmd_answer(library)
    assert library.engine.get(1).correct
    assert db.progress.get(("set1.json", "1"))["selected_option"] == 0


def test_cmd_answer_unknown_id(library, db):
    with patch("mcq_study.app.Prompt.ask", return_value="999"):
        cmd_answer(library)
    assert db.progress.get_all() == []


def test_cmd_favorite(library):
    with patch("mcq_study.app.Prompt.ask", return_value="4"):
        cmd_favorite(library)
    assert library.engine.get(4).favorite


def test_cmd_browse_runs_for_every_view(library):
    library.answer(2, 0)
    for view in View:
        cmd_browse(library, BrowseState(path=["Term 1"], view=view))


def test_run_quiz_session_answers_and_submits(library, db):
    session = library.new_quiz(rng=random.Random(5))
    session.configure("Term 2")
    questions = session.start(QuizConfig(count=3))
    letters = ["abcd"[q.correct_option_id] for q in questions[:2]]
    # answer q1, answer q2, leave q3 blank and submit
    with patch("mcq_study.app.Prompt.ask", side_effect=letters + ["s"]):
        run_quiz_session(session)
    assert session.state is QuizState.SCORED
    assert session.result.correct == 2
    assert session.result.accuracy_pct == 67
    assert len(db.progress.get_all()) == 3


def test_run_quiz_session_quit(library, db):
    session = library.new_quiz(rng=random.Random(5))
    session.configure()
    session.start(QuizConfig(count=3))
    with patch("mcq_study.app.Prompt.ask", return_value="q"):
        run_quiz_session(session)
    assert session.state is QuizState.IDLE
    assert db.progress.get_all() == []


def test_cmd_quiz_full_flow(library, db):
    state = BrowseState()
    with patch("mcq_study.app.Prompt.ask", side_effect=["Uncategorized", "s"]), \
            patch("mcq_study.app.IntPrompt.ask", side_effect=[1, 5]), \
            patch("mcq_study.app.Confirm.ask", return_value=True):
        cmd_quiz(library, state)
    assert state.view is View.HISTORY
    assert state.path == ["Uncategorized"]
    assert db.progress.get(("set1.json", "9"))["correct"] is False


def test_parse_args_defaults():
    args = parse_args(["a.json", "--db", "x.db"])
    assert args.paths == ["a.json"]
    assert args.db == "x.db"
    assert args.verbose is False


def test_main_loads_and_quits(tmp_db, question_file):
    with patch("mcq_study.app.Prompt.ask", return_value="quit"):
        main([question_file, "--db", tmp_db])
    with patch("mcq_study.app.Prompt.ask", side_effect=["dashboard", "tree", "quit"]):
        main(["--db", tmp_db])


def test_cmd_settings_clear_favorites(library, db):
    library.toggle_favorite(4)
    with patch("mcq_study.app.Prompt.ask", return_value="clear-favorites"), \
            patch("mcq_study.app.Confirm.ask", return_value=True):
        cmd_settings(library)
    assert db.favorites.get_all() == []
    assert not library.engine.get(4).favorite


def test_cmd_settings_clear_cache(library, db):
    assert db.files.get_all() != []
    with patch("mcq_study.app.Prompt.ask", return_value="clear-cache"):
        cmd_settings(library)
    assert db.files.get_all() == []
    assert len(library.engine.questions) == 10
