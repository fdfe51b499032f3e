"""Study library: wires persistence, the topic tree and quiz sessions together."""
import logging
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from mcq_study.db import Database, get_setting, set_setting
from mcq_study.errors import MalformedInputError, PersistenceFailure
from mcq_study.hierarchy import HierarchyEngine
from mcq_study.importer import load_payload
from mcq_study.models import DEFAULT_QUIZ_COUNT, DEFAULT_QUIZ_MINUTES, QuizConfig
from mcq_study.quiz import QuizSession

logger = logging.getLogger(__name__)

LAST_FILES_KEY = "last_files"
QUIZ_COUNT_KEY = "quiz_count"
QUIZ_MINUTES_KEY = "quiz_time_limit"


@dataclass
class LoadReport:
    files: list = field(default_factory=list)
    question_count: int = 0
    rejected: list = field(default_factory=list)
    skipped_questions: int = 0


class StudyLibrary:
    def __init__(self, database: Database, engine: Optional[HierarchyEngine] = None):
        self.db = database
        self.engine = engine or HierarchyEngine()
        self._generation = 0

    def load(self, paths: Sequence[str]) -> Optional[LoadReport]:
        """Load question files and rebuild the tree.

        Returns None when a newer ``load`` started before this one finished;
        the newer call's tree wins.
        """
        self._generation += 1
        generation = self._generation

        file_sets = []
        rejected: list[MalformedInputError] = []
        for path in paths:
            try:
                file_sets.append(load_payload(self.db.files, path))
            except MalformedInputError as exc:
                logger.warning("Skipping %s: %s", exc.filename, exc.detail)
                rejected.append(exc)
            except OSError as exc:
                logger.warning("Skipping %s: %s", path, exc)
                rejected.append(MalformedInputError(Path(path).name, f"cannot read: {exc.strerror or exc}"))
        progress = self.db.progress.get_all()
        favorites = self.db.favorites.get_all()

        if generation != self._generation:
            logger.info("Load of %d file(s) superseded by a newer load", len(paths))
            return None

        self.engine.ingest(file_sets, progress, favorites)
        rejected.extend(self.engine.rejected_files)
        loaded = [name for name, _ in file_sets if name in self.engine.metadata]

        try:
            set_setting(self.db, LAST_FILES_KEY, [str(Path(p)) for p in paths])
        except PersistenceFailure as exc:
            logger.warning("Could not remember last files: %s", exc)

        return LoadReport(
            files=loaded,
            question_count=len(self.engine.questions),
            rejected=rejected,
            skipped_questions=self.engine.skipped_questions,
        )

    def reload(self) -> Optional[LoadReport]:
        return self.load(self.last_files())

    def last_files(self) -> list[str]:
        return get_setting(self.db, LAST_FILES_KEY, []) or []

    def answer(self, question_id: Any, selected_option: int, file_id: Optional[str] = None) -> Optional[bool]:
        """Record an answer. Returns whether it was correct, or None for an unknown id."""
        question = self.engine.get(question_id, file_id)
        if question is None:
            return None
        is_correct = selected_option == question.correct_option_id
        self.db.progress.put({
            "question_id": str(question.id),
            "file_id": question.file_id,
            "correct": is_correct,
            "selected_option": selected_option,
        })
        self.engine.update_status(question.id, is_correct, question.file_id, selected_option)
        return is_correct

    def toggle_favorite(self, question_id: Any, file_id: Optional[str] = None) -> bool:
        question = self.engine.get(question_id, file_id)
        if question is None:
            return False
        if question.favorite:
            self.db.favorites.delete(question.id)
        else:
            self.db.favorites.put({"question_id": str(question.id), "file_id": question.file_id})
        return self.engine.toggle_favorite(question.id, question.file_id)

    def reset(self, question_id: Any, file_id: Optional[str] = None) -> None:
        question = self.engine.get(question_id, file_id)
        if question is None:
            return
        self.db.progress.delete(question.key)
        self.engine.reset_status(question.id, question.file_id)

    def clear_progress(self) -> None:
        self.db.progress.clear()
        self.engine.apply_snapshots([], self.db.favorites.get_all())

    def clear_favorites(self) -> None:
        self.db.favorites.clear()
        self.engine.apply_snapshots(self.db.progress.get_all(), [])

    def clear_cache(self) -> None:
        """Drop every cached question file; the next load reads from disk."""
        self.db.files.clear()

    def quiz_config(self) -> QuizConfig:
        return QuizConfig(
            count=int(get_setting(self.db, QUIZ_COUNT_KEY, DEFAULT_QUIZ_COUNT)),
            time_limit_minutes=int(get_setting(self.db, QUIZ_MINUTES_KEY, DEFAULT_QUIZ_MINUTES)),
        )

    def save_quiz_config(self, config: QuizConfig) -> None:
        set_setting(self.db, QUIZ_COUNT_KEY, config.count)
        set_setting(self.db, QUIZ_MINUTES_KEY, config.time_limit_minutes)

    def new_quiz(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> QuizSession:
        return QuizSession(self.engine, self.db.progress, rng=rng, clock=clock)
