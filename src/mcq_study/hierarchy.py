"""Topic tree construction and stats roll-up.

Questions live in a single flat arena (``HierarchyEngine.questions``). The
term -> subject -> lesson -> chapter tree only holds arena indices, so a
status or favorite change touches exactly one Question object and the stats
pass reads through the indices.
"""
import logging
from typing import Any, Iterable, Iterator, Sequence

from mcq_study.errors import MalformedInputError
from mcq_study.models import (
    TAXONOMY_LEVELS,
    HierarchyNode,
    InvalidQuestion,
    Question,
    Stats,
    question_key,
)

logger = logging.getLogger(__name__)


def extract_questions(filename: str, payload: Any) -> tuple[list, Any]:
    """Return (question objects, meta) from a bare list or a {questions: [...]} wrapper."""
    if isinstance(payload, list):
        return payload, None
    if isinstance(payload, dict) and isinstance(payload.get("questions"), list):
        return payload["questions"], payload.get("meta")
    raise MalformedInputError(filename)


def _progress_index(progress: Iterable[dict]) -> dict:
    return {question_key(p["file_id"], p["question_id"]): p for p in progress}


def _favorite_ids(favorites: Iterable[dict]) -> set:
    return {str(f["question_id"]) for f in favorites}


class HierarchyEngine:
    def __init__(self):
        self.questions: list[Question] = []
        self.tree: dict[str, HierarchyNode] = {}
        self.metadata: dict[str, Any] = {}
        self.rejected_files: list[MalformedInputError] = []
        self.skipped_questions = 0
        self._favorite_ids: set = set()
        self._positions: dict = {}

    # -- ingestion -------------------------------------------------------

    def ingest(
        self,
        file_sets: Sequence[tuple[str, Any]],
        progress: Iterable[dict] = (),
        favorites: Iterable[dict] = (),
    ) -> dict[str, HierarchyNode]:
        progress_by_key = _progress_index(progress)
        favorite_ids = _favorite_ids(favorites)
        arena: list[Question] = []
        metadata = {}
        rejected = []
        skipped = 0

        for filename, payload in file_sets:
            try:
                raw_questions, meta = extract_questions(filename, payload)
            except MalformedInputError as exc:
                logger.warning("Skipping %s: %s", filename, exc.detail)
                rejected.append(exc)
                continue
            metadata[filename] = meta
            for raw in raw_questions:
                try:
                    question = Question.from_raw(raw, filename)
                except InvalidQuestion as exc:
                    logger.warning("Skipping question in %s: %s", filename, exc)
                    skipped += 1
                    continue
                _apply_derived(question, progress_by_key, favorite_ids)
                arena.append(question)

        tree = build_tree(arena)
        recompute_stats(tree, arena)

        # Swap in only once the new state is complete
        self.questions = arena
        self.tree = tree
        self.metadata = metadata
        self.rejected_files = rejected
        self.skipped_questions = skipped
        self._favorite_ids = favorite_ids
        self._positions = _first_positions(arena)
        logger.info(
            "Ingested %d questions from %d file(s), %d rejected",
            len(arena), len(file_sets) - len(rejected), len(rejected),
        )
        return self.tree

    def apply_snapshots(self, progress: Iterable[dict], favorites: Iterable[dict]) -> None:
        """Recompute every derived field from fresh progress/favorite records."""
        progress_by_key = _progress_index(progress)
        favorite_ids = _favorite_ids(favorites)
        for question in self.questions:
            _apply_derived(question, progress_by_key, favorite_ids)
        self._favorite_ids = favorite_ids
        recompute_stats(self.tree, self.questions)

    # -- queries ---------------------------------------------------------

    def all_questions(self) -> list[Question]:
        return list(self.questions)

    def find_node(self, path: Sequence[str]) -> HierarchyNode | None:
        level: dict = self.tree
        node = None
        for key in path:
            if node is not None and node.is_chapter:
                break
            node = level.get(key)
            if node is None:
                return None
            level = node.children
        return node

    def query(self, path: Sequence[str] = ()) -> list[Question]:
        if not path:
            return self.all_questions()
        node = self.find_node(path)
        if node is None:
            return []
        return [self.questions[i] for i in _collect_refs(node)]

    def get(self, question_id: Any, file_id: str | None = None) -> Question | None:
        index = self._locate(question_id, file_id)
        return None if index is None else self.questions[index]

    def iter_nodes(self) -> Iterator[tuple[tuple[str, ...], HierarchyNode]]:
        """Yield (path, node) for every node, parents before children."""
        stack = [((name,), node) for name, node in reversed(self.tree.items())]
        while stack:
            path, node = stack.pop()
            yield path, node
            for name, child in reversed(node.children.items()):
                stack.append((path + (name,), child))

    def root_stats(self) -> Stats:
        total = Stats()
        for node in self.tree.values():
            total = total + node.stats
        return total

    def is_favorite(self, question_id: Any, file_id: str | None = None) -> bool:
        question = self.get(question_id, file_id)
        return question is not None and str(question.id) in self._favorite_ids

    @property
    def favorite_count(self) -> int:
        return len(self._favorite_ids)

    @property
    def file_ids(self) -> list[str]:
        return list(self.metadata)

    # -- mutations -------------------------------------------------------

    def update_status(
        self,
        question_id: Any,
        correct: bool,
        file_id: str | None = None,
        selected_option: int | None = None,
    ) -> None:
        index = self._locate(question_id, file_id)
        if index is None:
            logger.debug("update_status: %r not loaded, ignoring", question_id)
            return
        question = self.questions[index]
        question.solved = True
        question.correct = bool(correct)
        question.selected_option = selected_option
        recompute_stats(self.tree, self.questions)

    def update_many(self, results: Iterable[tuple[Any, str, bool, int | None]]) -> int:
        """Apply (question_id, file_id, correct, selected_option) results, one stats pass."""
        applied = 0
        for question_id, file_id, correct, selected_option in results:
            index = self._locate(question_id, file_id)
            if index is None:
                continue
            question = self.questions[index]
            question.solved = True
            question.correct = bool(correct)
            question.selected_option = selected_option
            applied += 1
        recompute_stats(self.tree, self.questions)
        return applied

    def reset_status(self, question_id: Any, file_id: str | None = None) -> None:
        index = self._locate(question_id, file_id)
        if index is None:
            logger.debug("reset_status: %r not loaded, ignoring", question_id)
            return
        question = self.questions[index]
        question.solved = False
        question.correct = False
        question.selected_option = None
        recompute_stats(self.tree, self.questions)

    def toggle_favorite(self, question_id: Any, file_id: str | None = None) -> bool:
        index = self._locate(question_id, file_id)
        if index is None:
            logger.debug("toggle_favorite: %r not loaded, ignoring", question_id)
            return False
        # Favorites are global: every loaded copy of the id follows the flag
        wanted = str(self.questions[index].id)
        favorite = wanted not in self._favorite_ids
        if favorite:
            self._favorite_ids.add(wanted)
        else:
            self._favorite_ids.discard(wanted)
        for question in self.questions:
            if str(question.id) == wanted:
                question.favorite = favorite
        return favorite

    def check_invariants(self) -> None:
        """Raise AssertionError when any node's stats disagree with its contents."""
        for path, node in self.iter_nodes():
            if node.is_chapter:
                if node.stats.total != len(node.question_refs):
                    raise AssertionError(f"{path}: total {node.stats.total} != {len(node.question_refs)} questions")
                expected = Stats.of(self.questions[i] for i in node.question_refs)
            else:
                expected = Stats()
                for child in node.children.values():
                    expected = expected + child.stats
            if node.stats != expected:
                raise AssertionError(f"{path}: stats {node.stats} != {expected}")

    def _locate(self, question_id: Any, file_id: str | None) -> int | None:
        if file_id is not None:
            return self._positions.get(question_key(file_id, question_id))
        wanted = str(question_id)
        for index, question in enumerate(self.questions):
            if str(question.id) == wanted:
                return index
        return None


def _apply_derived(question: Question, progress_by_key: dict, favorite_ids: set) -> None:
    record = progress_by_key.get(question.key)
    question.solved = record is not None
    question.correct = bool(record and record.get("correct"))
    question.selected_option = record.get("selected_option") if record else None
    question.favorite = str(question.id) in favorite_ids


def _first_positions(arena: list[Question]) -> dict:
    positions = {}
    for index, question in enumerate(arena):
        if question.key in positions:
            logger.warning(
                "Duplicate question id %r in %s: answers only reach the first copy",
                question.id, question.file_id,
            )
            continue
        positions[question.key] = index
    return positions


def build_tree(arena: Sequence[Question]) -> dict[str, HierarchyNode]:
    """Fold every question into tree[term].children[subject]...[chapter]."""
    tree: dict[str, HierarchyNode] = {}
    last = len(TAXONOMY_LEVELS) - 1
    for index, question in enumerate(arena):
        level_nodes = tree
        for depth, level in enumerate(TAXONOMY_LEVELS):
            name = question.taxonomy(level)
            node = level_nodes.get(name)
            if node is None:
                node = HierarchyNode(type=level.attr, name=name)
                level_nodes[name] = node
            if depth == last:
                node.question_refs.append(index)
            level_nodes = node.children
    return tree


def recompute_stats(tree: dict[str, HierarchyNode], arena: Sequence[Question]) -> None:
    """Post-order pass: chapters count their questions, branches sum children."""

    def visit(node: HierarchyNode) -> Stats:
        if node.is_chapter:
            node.stats = Stats.of(arena[i] for i in node.question_refs)
        else:
            stats = Stats()
            for child in node.children.values():
                stats = stats + visit(child)
            node.stats = stats
        return node.stats

    for node in tree.values():
        visit(node)


def _collect_refs(node: HierarchyNode) -> list[int]:
    if node.is_chapter:
        return list(node.question_refs)
    refs = []
    for child in node.children.values():
        refs.extend(_collect_refs(child))
    return refs
