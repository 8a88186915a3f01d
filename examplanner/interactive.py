from __future__ import annotations

from pathlib import Path
from typing import List

from rich import box
from rich.console import Console
from rich.table import Table

from examplanner.account import FileAccountService
from examplanner.cli import AppContext
from examplanner.conflicts import find_conflicts, find_hardships
from examplanner.errors import AccountError, RemotePersistFailure
from examplanner.export_ics import export_exams_to_ics
from examplanner.model import ExamRecord, ViewMode
from examplanner.reconcile import ScheduleState
from examplanner.search import filter_exams, save_search

console = Console()

MAX_RESULTS = 20


def _println(msg: str = "") -> None:
    console.print(msg)


def _prompt(msg: str) -> str:
    return console.input(msg)


def _location(exam: ExamRecord) -> str:
    return " / ".join(f"{b} {r}".strip() for b, r in exam.locations)


def _exam_table(title: str, exams: List[ExamRecord], ctx: AppContext) -> Table:
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Course")
    table.add_column("Sec")
    table.add_column("Term")
    table.add_column("Type")
    table.add_column("Time")
    table.add_column("Location")
    table.add_column("")

    for i, exam in enumerate(exams, start=1):
        added = "[green]✓[/]" if ctx.reconciler.contains(exam.id) else ""
        course = f"[bold cyan]{exam.course}[/]"
        if exam.course_title:
            course = f"{course} {exam.course_title}"
        table.add_row(
            str(i),
            course,
            exam.section,
            exam.year,
            exam.exam_type,
            f"{exam.start_time}-{exam.end_time}",
            _location(exam),
            added,
        )
    return table


def _header(ctx: AppContext, view_mode: ViewMode) -> None:
    user = ctx.account.user
    who = f"{user.name} <{user.email}>" if user else "Guest (saved on this device)"
    _println("\n=== Exam Planner (interactive) ===")
    _println(f"Signed in: {who}")
    _println(f"View: {view_mode.value.lower()} | Exams in catalog: {len(ctx.universe)} | Scheduled: {len(ctx.reconciler)}")


def _apply(ctx: AppContext, action) -> None:
    """
    Run a schedule mutation; a failed account write keeps the change on screen.
    """
    try:
        action()
    except RemotePersistFailure as e:
        _println(f"[yellow]Kept locally, but not saved to your account:[/] {e}")


def run_interactive(ctx: AppContext) -> None:
    """
    Interactive menu loop.
    """
    view_mode = ViewMode.CURRENT

    while True:
        _header(ctx, view_mode)

        choice = _prompt(
            "\n[1] Search + toggle exams\n"
            "[2] View schedule\n"
            "[3] Remove an exam\n"
            "[4] Show conflicts\n"
            "[5] Export .ics\n"
            "[6] Switch current/historical view\n"
            "[7] Sign in / sign out\n"
            "[8] Saved searches\n"
            "[0] Exit\n"
            "Select: "
        ).strip()

        if choice == "0":
            _println("Bye.")
            return

        if choice == "1":
            _flow_search_toggle(ctx, view_mode)
        elif choice == "2":
            _flow_view_schedule(ctx)
        elif choice == "3":
            _flow_remove(ctx)
        elif choice == "4":
            _flow_conflicts(ctx)
        elif choice == "5":
            _flow_export(ctx)
        elif choice == "6":
            view_mode = ViewMode.HISTORICAL if view_mode is ViewMode.CURRENT else ViewMode.CURRENT
            _println(f"View switched to {view_mode.value.lower()}.")
        elif choice == "7":
            _flow_auth(ctx)
        elif choice == "8":
            _flow_saved_searches(ctx, view_mode)
        else:
            _println("Invalid choice.")


def _flow_search_toggle(ctx: AppContext, view_mode: ViewMode, query: str = "") -> None:
    """
    Search and toggle exams. Picking an exam that is already scheduled removes it.
    """
    while True:
        if not query:
            query = _prompt("Course codes, comma separated (e.g. 'COMP 202, MATH') [blank = back]: ").strip()
        if not query:
            return

        matches = filter_exams(ctx.universe, query, view_mode, ctx.config.current_terms)
        if not matches:
            _println("No results.")
            query = ""
            continue

        shown = matches[:MAX_RESULTS]
        console.print(_exam_table(f"{len(matches)} results (max {MAX_RESULTS} shown)", shown, ctx))

        pick = _prompt("Enter number to toggle, 's' to save this search [blank = new search]: ").strip().lower()
        if pick == "s":
            _save(ctx, query)
            continue
        if not pick:
            query = ""
            continue
        if not pick.isdigit() or not (1 <= int(pick) <= len(shown)):
            _println("Out of range.")
            continue

        exam = shown[int(pick) - 1]
        was_added = ctx.reconciler.contains(exam.id)
        _apply(ctx, lambda: ctx.reconciler.toggle(exam))
        _println(f"{'Removed' if was_added else 'Added'}: {exam.course} {exam.exam_type}")


def _flow_view_schedule(ctx: AppContext) -> None:
    schedule = ctx.reconciler.schedule
    if not schedule:
        _println("No exams scheduled.")
        return
    console.print(_exam_table("Your exams", schedule, ctx))


def _flow_remove(ctx: AppContext) -> None:
    while True:
        schedule = ctx.reconciler.schedule
        if not schedule:
            _println("No exams scheduled.")
            return

        console.print(_exam_table("Remove exam", schedule, ctx))
        pick = _prompt("Enter number to remove (or blank to cancel): ").strip()
        if not pick:
            return
        if not pick.isdigit() or not (1 <= int(pick) <= len(schedule)):
            _println("Out of range.")
            continue

        exam = schedule[int(pick) - 1]
        _apply(ctx, lambda: ctx.reconciler.remove(exam.id))
        _println(f"Removed: {exam.course} {exam.exam_type}")


def _flow_conflicts(ctx: AppContext) -> None:
    schedule = ctx.reconciler.schedule
    if not schedule:
        _println("No exams scheduled.")
        return

    clashes = find_conflicts(schedule)
    hardships = find_hardships(schedule)

    if not clashes and not hardships:
        _println("[green]No conflicts found.[/]")
        return

    if clashes:
        table = Table(title=f"Clashes ({len(clashes)})", box=box.SIMPLE)
        table.add_column("Exam A")
        table.add_column("Exam B")
        for a, b in clashes:
            table.add_row(
                f"[bold cyan]{a.course}[/] {a.start_time}-{a.end_time}",
                f"[bold cyan]{b.course}[/] {b.start_time}-{b.end_time}",
            )
        console.print(table)

    if hardships:
        _println(f"[yellow]24-hour hardships: {len(hardships)}[/]")
        for group in hardships:
            _println("  - " + ", ".join(f"{e.course} ({e.start_time})" for e in group))


def _flow_export(ctx: AppContext) -> None:
    schedule = ctx.reconciler.schedule
    if not schedule:
        _println("No exams scheduled.")
        return

    default_path = Path.home() / "Downloads" / "exams.ics"
    out_in = _prompt(f"Output file [{default_path}]: ").strip()
    out_path = Path(out_in) if out_in else default_path
    if out_path.suffix.lower() != ".ics":
        out_path = out_path.with_suffix(".ics")

    n = export_exams_to_ics(schedule, out_path)
    _println(f"\nExported {n} exams.")
    _println(f"Saved to: {out_path.resolve()}")


def _flow_auth(ctx: AppContext) -> None:
    if ctx.account.is_authenticated:
        ctx.account.logout()
        ctx.reconciler.sync_auth()
        _println(f"Signed out. Showing the schedule saved on this device ({len(ctx.reconciler)} exams).")
        return

    if not isinstance(ctx.account, FileAccountService):
        _println("Sign-in is handled by the account service.")
        return

    email = _prompt("Email [blank = cancel]: ").strip()
    if not email:
        return

    user = ctx.account.login(email)
    state = ctx.reconciler.sync_auth()
    if state is ScheduleState.AUTHENTICATED:
        _println(f"Signed in as {user.name}. Showing your account schedule ({len(ctx.reconciler)} exams).")


def _save(ctx: AppContext, query: str) -> None:
    try:
        ok = save_search(ctx.account, query)
    except AccountError as e:
        _println(f"Could not save search: {e}")
        return
    _println(f"Saved search: {query}" if ok else "Sign in to save searches.")


def _flow_saved_searches(ctx: AppContext, view_mode: ViewMode) -> None:
    user = ctx.account.user
    if user is None:
        _println("Sign in to save searches.")
        return
    if not user.saved_searches:
        _println("No saved searches. Save one from the search screen with 's'.")
        return

    for i, q in enumerate(user.saved_searches, start=1):
        _println(f"{i}) {q}")

    pick = _prompt("Enter number to run [blank = back]: ").strip()
    if pick.isdigit() and 1 <= int(pick) <= len(user.saved_searches):
        _flow_search_toggle(ctx, view_mode, query=user.saved_searches[int(pick) - 1])
