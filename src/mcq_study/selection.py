"""View filters, free-text search and grouping of question lists."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

from mcq_study.models import TAXONOMY_LEVELS, Question, Stats, TaxonomyLevel

FLAT_GROUP_LABEL = "Questions"


class View(Enum):
    SOLVE = "solve"
    REVIEW = "review"
    HISTORY = "history"
    MISTAKES = "mistakes"
    FAVORITES = "favorites"

    @property
    def title(self) -> str:
        return VIEW_TITLES[self]


VIEW_TITLES = {
    View.SOLVE: "Study Mode",
    View.REVIEW: "Review Mode",
    View.HISTORY: "Answer History",
    View.MISTAKES: "Mistakes Review",
    View.FAVORITES: "Favorites",
}

_PREDICATES = {
    View.SOLVE: lambda q: not q.solved,
    View.REVIEW: lambda q: True,
    View.HISTORY: lambda q: q.solved,
    View.MISTAKES: lambda q: q.solved and not q.correct,
    View.FAVORITES: lambda q: q.favorite,
}


@dataclass
class QuestionGroup:
    label: str
    questions: list = field(default_factory=list)

    @property
    def stats(self) -> Stats:
        return Stats.of(self.questions)


def filter_by_view(questions: Iterable[Question], view: View) -> list[Question]:
    predicate = _PREDICATES[View(view)]
    return [q for q in questions if predicate(q)]


def matches_search(question: Question, text: str) -> bool:
    """Case-insensitive substring match on the stem, explanation or any option."""
    needle = text.strip().lower()
    if not needle:
        return True
    if needle in question.question.lower():
        return True
    if question.explanation and needle in question.explanation.lower():
        return True
    return any(needle in option.lower() for option in question.options)


def group_key_level(depth: int) -> TaxonomyLevel | None:
    """The taxonomy level one below a selection of the given depth."""
    if 0 <= depth < len(TAXONOMY_LEVELS):
        return TAXONOMY_LEVELS[depth]
    return None


def group_label(question: Question, depth: int) -> str:
    level = group_key_level(depth)
    return question.taxonomy(level) if level else FLAT_GROUP_LABEL


def group_questions(questions: Iterable[Question], depth: int) -> list[QuestionGroup]:
    groups: dict[str, QuestionGroup] = {}
    for question in questions:
        label = group_label(question, depth)
        if label not in groups:
            groups[label] = QuestionGroup(label)
        groups[label].questions.append(question)
    return list(groups.values())


def select(engine, path: Sequence[str], view: View, search_text: str = "") -> list[QuestionGroup]:
    """Questions under ``path`` for ``view``, grouped by the next taxonomy level."""
    questions = filter_by_view(engine.query(path), view)
    if search_text:
        questions = [q for q in questions if matches_search(q, search_text)]
    return group_questions(questions, len(path))


def breadcrumb(path: Sequence[str]) -> str:
    if not path:
        return "All Content"
    return " → ".join(path)
