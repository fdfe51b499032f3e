"""Dashboard scoring and statistics."""
from mcq_study.hierarchy import HierarchyEngine
from mcq_study.models import Stats


def get_result_label(score: float) -> str:
    if score >= 70:
        return "GREAT"
    elif score >= 50:
        return "GOOD"
    return "KEEP PRACTICING"


def get_result_color(score: float) -> str:
    if score >= 70:
        return "green"
    elif score >= 50:
        return "yellow"
    return "red"


def get_overview(engine: HierarchyEngine) -> dict:
    stats = engine.root_stats()
    return {
        "total": stats.total,
        "solved": stats.solved,
        "correct": stats.correct,
        "accuracy": stats.accuracy,
        "completion": stats.completion,
        "favorites": engine.favorite_count,
    }


def get_subject_scores(engine: HierarchyEngine) -> list[dict]:
    """Per-subject stats, merged across terms, best accuracy first."""
    merged: dict[str, Stats] = {}
    for term in engine.tree.values():
        for subject in term.children.values():
            merged[subject.name] = merged.get(subject.name, Stats()) + subject.stats
    results = [
        {
            "name": name,
            "total": s.total,
            "solved": s.solved,
            "correct": s.correct,
            "accuracy": s.accuracy,
            "label": get_result_label(s.accuracy),
        }
        for name, s in merged.items()
    ]
    # Stable sort keeps first-seen order among ties
    results.sort(key=lambda r: r["correct"] / r["solved"] if r["solved"] else 0, reverse=True)
    return results


def get_strongest_and_weakest(engine: HierarchyEngine) -> tuple[dict | None, dict | None]:
    scores = get_subject_scores(engine)
    if not scores:
        return None, None
    return scores[0], scores[-1]
