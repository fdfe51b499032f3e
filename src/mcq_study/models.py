"""Data classes for the question bank and the topic tree."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class TaxonomyLevel(Enum):
    TERM = ("term", "Uncategorized")
    SUBJECT = ("subject", "General")
    LESSON = ("lesson", "General")
    CHAPTER = ("chapter", "General")

    def __init__(self, attr: str, placeholder: str):
        self.attr = attr
        self.placeholder = placeholder


TAXONOMY_LEVELS = tuple(TaxonomyLevel)


class InvalidQuestion(ValueError):
    """A single question object failed the structural shape check."""


def _taxonomy_value(raw: dict, level: TaxonomyLevel) -> str:
    value = raw.get(level.attr)
    if value is None or (isinstance(value, str) and not value.strip()):
        return level.placeholder
    return str(value)


@dataclass
class Question:
    id: Any
    question: str
    options: list
    correct_option_id: int
    explanation: str = ""
    term: str = TaxonomyLevel.TERM.placeholder
    subject: str = TaxonomyLevel.SUBJECT.placeholder
    lesson: str = TaxonomyLevel.LESSON.placeholder
    chapter: str = TaxonomyLevel.CHAPTER.placeholder
    file_id: str = ""
    # Derived from progress/favorite records, recomputed on every load
    solved: bool = False
    correct: bool = False
    favorite: bool = False
    selected_option: Optional[int] = None

    @property
    def key(self) -> tuple[str, str]:
        return question_key(self.file_id, self.id)

    def taxonomy(self, level: TaxonomyLevel) -> str:
        return getattr(self, level.attr)

    @property
    def path(self) -> tuple[str, ...]:
        return tuple(self.taxonomy(level) for level in TAXONOMY_LEVELS)

    @classmethod
    def from_raw(cls, raw: Any, file_id: str) -> "Question":
        """Build a Question from a decoded JSON/YAML object.

        Only the structure is checked: an id, a string stem, at least two
        string options and an integer correct_option_id pointing into them.
        Missing taxonomy fields get their placeholder here and nowhere else.
        """
        if not isinstance(raw, dict):
            raise InvalidQuestion(f"question must be an object, got {type(raw).__name__}")
        if raw.get("id") is None:
            raise InvalidQuestion("question is missing 'id'")
        text = raw.get("question")
        if not isinstance(text, str):
            raise InvalidQuestion(f"question {raw['id']!r} has no text")
        options = raw.get("options")
        if (
            not isinstance(options, list)
            or len(options) < 2
            or not all(isinstance(o, str) for o in options)
        ):
            raise InvalidQuestion(f"question {raw['id']!r} needs at least two string options")
        correct = raw.get("correct_option_id")
        if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < len(options):
            raise InvalidQuestion(f"question {raw['id']!r} has an invalid correct_option_id")
        return cls(
            id=raw["id"],
            question=text,
            options=list(options),
            correct_option_id=correct,
            explanation="" if raw.get("explanation") is None else str(raw["explanation"]),
            term=_taxonomy_value(raw, TaxonomyLevel.TERM),
            subject=_taxonomy_value(raw, TaxonomyLevel.SUBJECT),
            lesson=_taxonomy_value(raw, TaxonomyLevel.LESSON),
            chapter=_taxonomy_value(raw, TaxonomyLevel.CHAPTER),
            file_id=file_id,
        )


def question_key(file_id: str, question_id: Any) -> tuple[str, str]:
    """Composite identity used for progress and favorite lookups."""
    return (file_id, str(question_id))


@dataclass
class Stats:
    total: int = 0
    solved: int = 0
    correct: int = 0

    def __add__(self, other: "Stats") -> "Stats":
        return Stats(
            total=self.total + other.total,
            solved=self.solved + other.solved,
            correct=self.correct + other.correct,
        )

    @property
    def accuracy(self) -> int:
        """Percent correct among solved questions."""
        if not self.solved:
            return 0
        return round(self.correct / self.solved * 100)

    @property
    def completion(self) -> int:
        if not self.total:
            return 0
        return round(self.solved / self.total * 100)

    @classmethod
    def of(cls, questions) -> "Stats":
        stats = cls()
        for q in questions:
            stats.total += 1
            stats.solved += int(q.solved)
            stats.correct += int(q.correct)
        return stats


@dataclass
class HierarchyNode:
    type: str  # term | subject | lesson | chapter
    name: str
    children: dict = field(default_factory=dict)
    question_refs: list = field(default_factory=list)
    stats: Stats = field(default_factory=Stats)

    @property
    def is_chapter(self) -> bool:
        return self.type == TaxonomyLevel.CHAPTER.attr


@dataclass
class ProgressRecord:
    question_id: str
    file_id: str
    correct: bool
    selected_option: Optional[int] = None
    timestamp: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return question_key(self.file_id, self.question_id)


@dataclass
class FavoriteRecord:
    question_id: str
    file_id: str
    timestamp: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return question_key(self.file_id, self.question_id)


DEFAULT_QUIZ_COUNT = 20
DEFAULT_QUIZ_MINUTES = 30


@dataclass
class QuizConfig:
    count: int = DEFAULT_QUIZ_COUNT
    time_limit_minutes: int = DEFAULT_QUIZ_MINUTES

    def __post_init__(self):
        if self.count < 1:
            raise ValueError("count must be a positive integer")
        if self.time_limit_minutes < 1:
            raise ValueError("time_limit_minutes must be a positive integer")
