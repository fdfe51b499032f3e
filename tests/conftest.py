import pytest

from mcq_study.db import Database
from mcq_study.hierarchy import HierarchyEngine


def _question(qid, term=None, subject=None, lesson=None, chapter=None, correct=0, text=None, explanation=""):
    q = {
        "id": qid,
        "question": text or f"Question {qid}?",
        "options": [f"opt {qid}a", f"opt {qid}b", f"opt {qid}c", f"opt {qid}d"],
        "correct_option_id": correct,
        "explanation": explanation,
    }
    for name, value in (("term", term), ("subject", subject), ("lesson", lesson), ("chapter", chapter)):
        if value is not None:
            q[name] = value
    return q


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_study.db")
    return db_path


@pytest.fixture
def db(tmp_db):
    return Database(tmp_db)


@pytest.fixture
def make_question():
    return _question


@pytest.fixture
def sample_questions():
    """Ten questions spread over two terms plus one with no taxonomy at all."""
    return [
        _question(1, "Term 1", "Math", "Algebra", "Linear", correct=0, explanation="Slope intercept form"),
        _question(2, "Term 1", "Math", "Algebra", "Linear", correct=1),
        _question(3, "Term 1", "Math", "Algebra", "Quadratic", correct=2, text="Solve the Quadratic equation"),
        _question(4, "Term 1", "Math", "Geometry", "Angles", correct=3),
        _question(5, "Term 1", "Physics", "Mechanics", "Motion", correct=0),
        _question(6, "Term 1", "Physics", "Mechanics", "Motion", correct=1),
        _question(7, "Term 2", "Chemistry", "Atoms", "Structure", correct=2),
        _question(8, "Term 2", "Chemistry", "Atoms", "Structure", correct=3),
        _question(9, correct=0),
        _question(10, "Term 2", "Chemistry", correct=1),
    ]


@pytest.fixture
def engine(sample_questions):
    engine = HierarchyEngine()
    engine.ingest([("set1.json", sample_questions)])
    return engine
