"""Interactive CLI application."""
import argparse
import logging
import string
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table
from rich.tree import Tree

from mcq_study.dashboard import (
    get_overview, get_result_color, get_result_label, get_strongest_and_weakest,
    get_subject_scores,
)
from mcq_study.db import DEFAULT_DB_PATH, Database
from mcq_study.errors import NoQuestionsAvailable, StudyError
from mcq_study.hierarchy import HierarchyEngine
from mcq_study.importer import discover_files
from mcq_study.library import StudyLibrary
from mcq_study.models import Question, QuizConfig, Stats
from mcq_study.quiz import ALL_SCOPE, QuizSession, QuizState, format_time
from mcq_study.selection import View, breadcrumb, select

console = Console()

LETTERS = string.ascii_uppercase


@dataclass
class BrowseState:
    path: list = field(default_factory=list)
    view: View = View.SOLVE
    search: str = ""


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome():
    console.print(Panel(
        "[bold]MCQ Study[/bold]\n[dim]Question bank trainer[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("load", "Load question files"),
        ("tree", "Topic tree with progress"),
        ("cd", "Select a topic path"),
        ("view", "Switch view / search"),
        ("browse", "List questions for the current selection"),
        ("answer", "Answer a question"),
        ("favorite", "Toggle a favorite"),
        ("reset", "Forget an answer"),
        ("quiz", "Timed quiz"),
        ("dashboard", "Overall progress"),
        ("settings", "Quiz defaults and data"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def stats_badge(stats: Stats) -> str:
    return f"{stats.solved}/{stats.total} ({stats.accuracy}%)"


def render_tree(engine: HierarchyEngine) -> Tree:
    root = Tree(f"[bold]All Content[/bold] [dim]{stats_badge(engine.root_stats())}[/dim]")
    branches = {(): root}
    for path, node in engine.iter_nodes():
        parent = branches[path[:-1]]
        branches[path] = parent.add(f"{node.name} [dim]{stats_badge(node.stats)}[/dim]")
    return root


def question_marker(question: Question) -> str:
    if not question.solved:
        marker = "[dim]·[/dim]"
    elif question.correct:
        marker = "[green]✓[/green]"
    else:
        marker = "[red]✗[/red]"
    if question.favorite:
        marker += "[yellow]★[/yellow]"
    return marker


def show_question(question: Question, selected: int | None = None, reveal: bool = False) -> None:
    console.print(f"\n[bold]{question.question}[/bold]\n")
    for i, option in enumerate(question.options):
        style = "cyan"
        if reveal and i == question.correct_option_id:
            style = "green"
        elif reveal and i == selected:
            style = "red"
        pointer = "›" if i == selected else " "
        console.print(f" {pointer}[{style}]{LETTERS[i]})[/{style}] {option}")


def ask_option(question: Question, prompt: str = "\nYour answer", extra: tuple = ()) -> str:
    choices = [LETTERS[i].lower() for i in range(len(question.options))] + list(extra)
    return Prompt.ask(prompt, choices=choices).strip().lower()


def cmd_load(library: StudyLibrary, state: BrowseState):
    target = Prompt.ask("File or directory")
    path = Path(target)
    if not path.exists():
        console.print(f"[red]Not found: {target}[/red]")
        return
    paths = discover_files(target) if path.is_dir() else [target]
    report = library.load(paths)
    if report is None:
        return
    state.path = []
    for exc in report.rejected:
        console.print(f"[yellow]Skipped {exc.filename}: {exc.detail}[/yellow]")
    if report.skipped_questions:
        console.print(f"[yellow]{report.skipped_questions} malformed question(s) ignored[/yellow]")
    console.print(f"[green]Loaded {report.question_count} questions from {len(report.files)} file(s)[/green]")


def cmd_tree(library: StudyLibrary):
    if not library.engine.questions:
        console.print("[yellow]Nothing loaded yet. Use 'load'.[/yellow]")
        return
    console.print(render_tree(library.engine))


def cmd_cd(library: StudyLibrary, state: BrowseState):
    raw = Prompt.ask("Path (term/subject/lesson/chapter, '/' for all, '..' for up)", default="/")
    if raw.strip() == "..":
        state.path = state.path[:-1]
    elif raw.strip() in ("", "/"):
        state.path = []
    else:
        state.path = [part.strip() for part in raw.strip("/").split("/") if part.strip()]
    if state.path and library.engine.find_node(state.path) is None:
        console.print(f"[yellow]No topic at {breadcrumb(state.path)}[/yellow]")
    console.print(f"[dim]{breadcrumb(state.path)}[/dim]")


def cmd_view(state: BrowseState):
    choice = Prompt.ask("View", choices=[v.value for v in View], default=state.view.value)
    state.view = View(choice)
    state.search = Prompt.ask("Search text (blank for none)", default="")


def cmd_browse(library: StudyLibrary, state: BrowseState):
    groups = select(library.engine, state.path, state.view, state.search)
    console.print(f"\n[bold]{state.view.title}[/bold] [dim]{breadcrumb(state.path)}[/dim]")
    if not groups:
        console.print("[yellow]No questions found. Try adjusting your filters or selection.[/yellow]")
        return
    for group in groups:
        stats = group.stats
        table = Table(title=f"{group.label} — {stats.solved}/{stats.total} solved • {stats.accuracy}% accuracy")
        table.add_column("", justify="center")
        table.add_column("ID", style="cyan")
        table.add_column("File", style="dim")
        table.add_column("Question")
        for q in group.questions:
            table.add_row(question_marker(q), str(q.id), q.file_id, q.question)
        console.print(table)


def _pick_question(library: StudyLibrary) -> Question | None:
    question_id = Prompt.ask("Question ID")
    file_id = None
    if len(library.engine.file_ids) > 1:
        file_id = Prompt.ask("File", choices=library.engine.file_ids)
    question = library.engine.get(question_id, file_id)
    if question is None:
        console.print(f"[red]No question {question_id!r} loaded.[/red]")
    return question


def cmd_answer(library: StudyLibrary):
    question = _pick_question(library)
    if question is None:
        return
    show_question(question, question.selected_option)
    letter = ask_option(question)
    selected = LETTERS.index(letter.upper())
    is_correct = library.answer(question.id, selected, question.file_id)
    show_question(question, selected, reveal=True)
    if is_correct:
        console.print("[green]Correct![/green]")
    else:
        console.print(f"[red]Incorrect.[/red] Answer: [green]{LETTERS[question.correct_option_id]}[/green]")
    if question.explanation:
        console.print(f"[dim]{question.explanation}[/dim]")


def cmd_favorite(library: StudyLibrary):
    question = _pick_question(library)
    if question is None:
        return
    if library.toggle_favorite(question.id, question.file_id):
        console.print("[yellow]★ Added to favorites[/yellow]")
    else:
        console.print("[dim]Removed from favorites[/dim]")


def cmd_reset(library: StudyLibrary):
    question = _pick_question(library)
    if question is None:
        return
    library.reset(question.id, question.file_id)
    console.print("[dim]Answer cleared.[/dim]")


def show_quiz_result(session: QuizSession) -> None:
    result = session.result
    color = get_result_color(result.accuracy_pct)
    console.print(Panel(
        f"[bold]{result.correct} / {result.total} Correct[/bold]\n"
        f"[{color}]{result.accuracy_pct}% Accuracy — {get_result_label(result.accuracy_pct)}[/{color}]",
        title="Quiz Complete!", border_style=color,
    ))


def run_quiz_session(session: QuizSession) -> None:
    """Drive an ACTIVE session from the keyboard until it is scored or abandoned."""
    while session.state is QuizState.ACTIVE:
        remaining = session.poll()
        if session.state is not QuizState.ACTIVE:
            console.print("[red]Time is up![/red]")
            break
        question = session.current_question
        console.print(f"\n[bold]Q{session.progress_label}[/bold]  [dim]⏱ {format_time(remaining)}[/dim]")
        show_question(question, session.selected_option(question))
        nav = ("p", "s") if session.is_last_question else ("p", "n")
        choice = ask_option(question, "\nAnswer, (p)rev, (n)ext/(s)ubmit, (q)uit", extra=nav + ("q",))
        session.poll()
        if session.state is not QuizState.ACTIVE:
            console.print("[red]Time is up![/red]")
            break
        if choice == "q":
            session.close()
            console.print("[dim]Quiz abandoned.[/dim]")
            return
        elif choice == "p":
            session.prev()
        elif choice == "n":
            session.next()
        elif choice == "s":
            session.submit()
        else:
            session.answer(question.id, LETTERS.index(choice.upper()), question.file_id)
            if not session.is_last_question:
                session.next()
    if session.state is QuizState.SCORED:
        show_quiz_result(session)


def cmd_quiz(library: StudyLibrary, state: BrowseState):
    console.print("\n[bold]Quiz[/bold]")
    labels = [g.label for g in select(library.engine, state.path, View.REVIEW)]
    scope = Prompt.ask("Source", choices=[ALL_SCOPE] + labels, default=ALL_SCOPE)
    session = library.new_quiz()
    try:
        available = session.configure(scope, state.path)
    except NoQuestionsAvailable:
        console.print("[yellow]No questions available for quiz[/yellow]")
        return
    defaults = library.quiz_config()
    count = IntPrompt.ask(f"Number of questions (max {available})", default=min(defaults.count, available))
    minutes = IntPrompt.ask("Time limit (minutes)", default=defaults.time_limit_minutes)
    try:
        config = QuizConfig(count=count, time_limit_minutes=minutes)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        return
    session.start(config)
    run_quiz_session(session)
    if session.state is QuizState.SCORED and Confirm.ask("Review answers?", default=False):
        request = session.review()
        state.view, state.path, state.search = request.view, list(request.path), ""
        cmd_browse(library, state)
    session.close()


def cmd_dashboard(library: StudyLibrary):
    overview = get_overview(library.engine)
    color = get_result_color(overview["accuracy"])
    bar_filled = int(overview["completion"] / 5)
    bar = f"[blue]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/blue]"
    console.print(Panel(
        f"Progress {overview['completion']}% {bar}\n"
        f"Questions: [bold]{overview['total']}[/bold]  |  Solved: [bold]{overview['solved']}[/bold]  |  "
        f"Accuracy: [{color}]{overview['accuracy']}%[/{color}]  |  Favorites: [bold]{overview['favorites']}[/bold]",
        title="Dashboard Overview", border_style="blue",
    ))
    scores = get_subject_scores(library.engine)
    if not scores:
        return
    table = Table(title="Subjects")
    table.add_column("Subject", style="cyan")
    table.add_column("Solved", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Status")
    for s in scores:
        sc_color = get_result_color(s["accuracy"])
        table.add_row(s["name"], f"{s['solved']}/{s['total']}", f"{s['accuracy']}%",
                      f"[{sc_color}]{s['label']}[/{sc_color}]")
    console.print(table)
    strongest, weakest = get_strongest_and_weakest(library.engine)
    if strongest is not weakest:
        console.print(f"  Strongest: [green]{strongest['name']} ({strongest['accuracy']}%)[/green]")
        console.print(f"  Needs Work: [red]{weakest['name']} ({weakest['accuracy']}%)[/red]")


def cmd_settings(library: StudyLibrary):
    config = library.quiz_config()
    console.print(f"Quiz defaults: {config.count} questions, {config.time_limit_minutes} min")
    choice = Prompt.ask(
        "Change", choices=["quiz", "clear-progress", "clear-favorites", "clear-cache", "back"], default="back"
    )
    if choice == "quiz":
        count = IntPrompt.ask("Default question count", default=config.count)
        minutes = IntPrompt.ask("Default time limit (minutes)", default=config.time_limit_minutes)
        library.save_quiz_config(QuizConfig(count=count, time_limit_minutes=minutes))
        console.print("[green]Saved.[/green]")
    elif choice == "clear-progress":
        if Confirm.ask("Forget every recorded answer?", default=False):
            library.clear_progress()
            console.print("[green]Progress cleared.[/green]")
    elif choice == "clear-favorites":
        if Confirm.ask("Remove every favorite?", default=False):
            library.clear_favorites()
            console.print("[green]Favorites cleared.[/green]")
    elif choice == "clear-cache":
        library.clear_cache()
        console.print("[green]Cached files cleared. They will be re-read on the next load.[/green]")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="mcq-study", description="Multiple-choice question trainer")
    parser.add_argument("paths", nargs="*", help="question files or directories to load")
    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite database path")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.verbose)
    library = StudyLibrary(Database(args.db))
    state = BrowseState()

    show_welcome()
    paths = []
    for p in args.paths:
        paths.extend(discover_files(p) if Path(p).is_dir() else [p])
    try:
        report = library.load(paths) if paths else (library.reload() if library.last_files() else None)
    except (StudyError, OSError) as e:
        console.print(f"[red]Error loading questions: {e}[/red]")
        report = None
    if report:
        console.print(f"[green]Loaded {report.question_count} questions[/green]")

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="browse").strip().lower()
        try:
            if choice == "load":
                cmd_load(library, state)
            elif choice == "tree":
                cmd_tree(library)
            elif choice == "cd":
                cmd_cd(library, state)
            elif choice == "view":
                cmd_view(state)
            elif choice == "browse":
                cmd_browse(library, state)
            elif choice == "answer":
                cmd_answer(library)
            elif choice == "favorite":
                cmd_favorite(library)
            elif choice == "reset":
                cmd_reset(library)
            elif choice == "quiz":
                cmd_quiz(library, state)
            elif choice == "dashboard":
                cmd_dashboard(library)
            elif choice == "settings":
                cmd_settings(library)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck on your exam![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except (StudyError, OSError) as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
