"""Timed quiz sessions over a sampled subset of the loaded questions."""
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from mcq_study.errors import InvalidTransition, NoQuestionsAvailable
from mcq_study.models import Question, QuizConfig
from mcq_study.selection import View, group_key_level, group_label

logger = logging.getLogger(__name__)

ALL_SCOPE = "all"


class QuizState(Enum):
    IDLE = "idle"
    CONFIGURING = "configuring"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    SCORED = "scored"
    REVIEWING = "reviewing"


@dataclass
class QuestionOutcome:
    question: Question
    selected_option: Optional[int]
    correct: bool


@dataclass
class QuizResult:
    outcomes: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def correct(self) -> int:
        return sum(1 for o in self.outcomes if o.correct)

    @property
    def accuracy_pct(self) -> int:
        if not self.outcomes:
            return 0
        return round(self.correct / self.total * 100)


@dataclass
class ReviewRequest:
    view: View
    path: tuple


class Countdown:
    """One-second ticks derived from a monotonic clock.

    Nothing runs in the background: the owner calls ``due()`` and receives
    the number of whole seconds that elapsed since the previous call.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._started: Optional[float] = None
        self._issued = 0

    @property
    def running(self) -> bool:
        return self._started is not None

    def start(self) -> None:
        self._started = self.clock()
        self._issued = 0

    def cancel(self) -> None:
        self._started = None
        self._issued = 0

    def due(self) -> int:
        if self._started is None:
            return 0
        elapsed = int(self.clock() - self._started)
        pending = max(elapsed - self._issued, 0)
        self._issued += pending
        return pending


def resolve_scope(engine, scope: str = ALL_SCOPE, path: Sequence[str] = ()) -> list[Question]:
    """Candidate questions for a quiz: everything, or one group under ``path``."""
    if scope == ALL_SCOPE:
        return engine.all_questions()
    depth = len(path)
    return [q for q in engine.query(path) if group_label(q, depth) == scope]


class QuizSession:
    def __init__(
        self,
        engine,
        progress_store,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.progress_store = progress_store
        self.rng = rng or random.Random()
        self.countdown = Countdown(clock)
        self.state = QuizState.IDLE
        self.scope = ALL_SCOPE
        self.scope_path: tuple = ()
        self.candidates: list[Question] = []
        self.questions: list[Question] = []
        self.current_index = 0
        self.answers: dict = {}
        self.time_remaining = 0
        self.result: Optional[QuizResult] = None

    # -- setup -----------------------------------------------------------

    def configure(self, scope: str = ALL_SCOPE, path: Sequence[str] = ()) -> int:
        if self.state not in (QuizState.IDLE, QuizState.CONFIGURING):
            raise InvalidTransition(f"Cannot configure a quiz while {self.state.value}")
        candidates = resolve_scope(self.engine, scope, path)
        if not candidates:
            raise NoQuestionsAvailable(scope)
        self.scope = scope
        self.scope_path = tuple(path)
        self.candidates = candidates
        self.state = QuizState.CONFIGURING
        return len(candidates)

    def start(self, config: Optional[QuizConfig] = None) -> list[Question]:
        if self.state is not QuizState.CONFIGURING:
            raise InvalidTransition(f"Cannot start a quiz while {self.state.value}")
        config = config or QuizConfig()
        pool = list(self.candidates)
        self.rng.shuffle(pool)
        self.questions = pool[: min(config.count, len(pool))]
        self.current_index = 0
        self.answers = {}
        self.result = None
        self.time_remaining = config.time_limit_minutes * 60
        self.state = QuizState.ACTIVE
        self.countdown.start()
        logger.info(
            "Quiz started: %d of %d questions from %r, %d min",
            len(self.questions), len(pool), self.scope, config.time_limit_minutes,
        )
        return self.questions

    # -- answering and navigation ---------------------------------------

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return bool(self.questions) and self.current_index == len(self.questions) - 1

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def progress_label(self) -> str:
        return f"{self.current_index + 1}/{len(self.questions)}"

    def selected_option(self, question: Question) -> Optional[int]:
        return self.answers.get(question.key)

    def answer(self, question_id: Any, option_index: int, file_id: Optional[str] = None) -> None:
        if self.state is not QuizState.ACTIVE:
            return
        question = self._find(question_id, file_id)
        if question is None:
            logger.debug("answer: %r is not part of this quiz", question_id)
            return
        if not 0 <= option_index < len(question.options):
            raise ValueError(f"Option {option_index} out of range for question {question.id!r}")
        self.answers[question.key] = option_index

    def next(self) -> None:
        if self.state is QuizState.ACTIVE and self.current_index < len(self.questions) - 1:
            self.current_index += 1

    def prev(self) -> None:
        if self.state is QuizState.ACTIVE and self.current_index > 0:
            self.current_index -= 1

    def _find(self, question_id: Any, file_id: Optional[str] = None) -> Optional[Question]:
        """The quiz question with this id, preferring the one on screen.

        Ids can repeat across files, so pass ``file_id`` to pin the question.
        """
        wanted = str(question_id)

        def matches(question: Question) -> bool:
            return str(question.id) == wanted and (file_id is None or question.file_id == file_id)

        current = self.current_question
        if current is not None and matches(current):
            return current
        for question in self.questions:
            if matches(question):
                return question
        return None

    # -- timer -----------------------------------------------------------

    def tick(self) -> None:
        """Count one second down; the quiz submits on the tick that reaches zero."""
        if self.state is not QuizState.ACTIVE:
            return
        if self.time_remaining > 0:
            self.time_remaining -= 1
        if self.time_remaining <= 0:
            logger.info("Quiz time expired with %d/%d answered", self.answered_count, len(self.questions))
            self.submit()

    def poll(self) -> int:
        """Issue one tick per second elapsed since the last poll; return time left."""
        for _ in range(self.countdown.due()):
            if self.state is not QuizState.ACTIVE:
                break
            self.tick()
        return self.time_remaining

    # -- scoring ---------------------------------------------------------

    def submit(self) -> QuizResult:
        if self.state is not QuizState.ACTIVE:
            raise InvalidTransition(f"Cannot submit a quiz while {self.state.value}")
        self.countdown.cancel()
        self.state = QuizState.SUBMITTING

        result = QuizResult()
        for question in self.questions:
            selected = self.answers.get(question.key)
            is_correct = selected is not None and selected == question.correct_option_id
            result.outcomes.append(QuestionOutcome(question, selected, is_correct))

        for outcome in result.outcomes:
            self.progress_store.put({
                "question_id": str(outcome.question.id),
                "file_id": outcome.question.file_id,
                "correct": outcome.correct,
                "selected_option": outcome.selected_option,
            })
        self.engine.update_many(
            (o.question.id, o.question.file_id, o.correct, o.selected_option)
            for o in result.outcomes
        )

        self.result = result
        self.state = QuizState.SCORED
        logger.info("Quiz scored: %d/%d (%d%%)", result.correct, result.total, result.accuracy_pct)
        return result

    def review(self) -> ReviewRequest:
        if self.state is not QuizState.SCORED:
            raise InvalidTransition(f"Cannot review a quiz while {self.state.value}")
        self.state = QuizState.REVIEWING
        path = self.scope_path
        if self.scope != ALL_SCOPE and group_key_level(len(path)) is not None:
            path = path + (self.scope,)
        return ReviewRequest(view=View.HISTORY, path=path)

    def close(self) -> None:
        self.countdown.cancel()
        self.state = QuizState.IDLE
        self.candidates = []
        self.questions = []
        self.answers = {}
        self.current_index = 0
        self.time_remaining = 0


def format_time(seconds: int) -> str:
    seconds = max(seconds, 0)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
