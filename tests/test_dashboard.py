"""Tests for dashboard scoring."""
from mcq_study.dashboard import (
    get_overview, get_result_color, get_result_label, get_strongest_and_weakest,
    get_subject_scores,
)
from mcq_study.hierarchy import HierarchyEngine


def test_result_labels():
    assert get_result_label(100) == "GREAT"
    assert get_result_label(70) == "GREAT"
    assert get_result_label(69.9) == "GOOD"
    assert get_result_label(50) == "GOOD"
    assert get_result_label(49) == "KEEP PRACTICING"


def test_result_colors():
    assert get_result_color(70) == "green"
    assert get_result_color(50) == "yellow"
    assert get_result_color(0) == "red"


def test_overview_empty_engine():
    overview = get_overview(HierarchyEngine())
    assert overview == {
        "total": 0, "solved": 0, "correct": 0, "accuracy": 0, "completion": 0, "favorites": 0,
    }


def test_overview_counts(engine):
    engine.update_status(1, True)
    engine.update_status(2, False)
    engine.toggle_favorite(9)
    overview = get_overview(engine)
    assert overview["total"] == 10
    assert overview["solved"] == 2
    assert overview["accuracy"] == 50
    assert overview["completion"] == 20
    assert overview["favorites"] == 1


def test_subject_scores_sorted_by_accuracy(engine):
    engine.update_status(1, False)
    engine.update_status(5, True)
    engine.update_status(7, True)
    engine.update_status(8, False)
    scores = get_subject_scores(engine)
    assert [s["name"] for s in scores] == ["Physics", "Chemistry", "Math", "General"]
    physics = scores[0]
    assert physics["accuracy"] == 100
    assert physics["label"] == "GREAT"


def test_subject_scores_merge_across_terms(make_question):
    engine = HierarchyEngine()
    engine.ingest([("a.json", [
        make_question(1, "T1", "Math"), make_question(2, "T2", "Math"), make_question(3, "T2", "Art"),
    ])])
    scores = {s["name"]: s for s in get_subject_scores(engine)}
    assert scores["Math"]["total"] == 2
    assert scores["Art"]["total"] == 1


def test_strongest_and_weakest(engine):
    engine.update_status(5, True)
    engine.update_status(1, False)
    strongest, weakest = get_strongest_and_weakest(engine)
    assert strongest["name"] == "Physics"
    assert weakest["accuracy"] == 0


def test_strongest_and_weakest_empty():
    assert get_strongest_and_weakest(HierarchyEngine()) == (None, None)
