"""
CLI (Command Line Interface).

This module provides quick terminal commands for power users and for testing, e.g.:

    examplanner search "comp 202, math 240"
    examplanner add <exam_id>
    examplanner remove <exam_id>
    examplanner schedule
    examplanner conflicts
    examplanner export <file.ics>
    examplanner login <email> / logout / whoami
    examplanner interactive

Note:
- The interactive UI lives in examplanner/interactive.py
- This CLI is intentionally simple and prints plain text (no rich formatting)
- Diagnostics go through structlog on stderr, user output is printed on stdout
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Dict, List, Optional

from examplanner.account import AccountService, FileAccountService, HttpAccountService
from examplanner.config import ExamPlannerConfig, get_config
from examplanner.conflicts import find_conflicts, find_hardships
from examplanner.errors import AccountError, RemotePersistFailure, ScrapeError
from examplanner.export_ics import export_exams_to_ics
from examplanner.log import setup_logging
from examplanner.model import ExamRecord, ViewMode
from examplanner.parse import catalog_dir, load_catalog
from examplanner.reconcile import ScheduleReconciler, ScheduleState
from examplanner.search import filter_exams, save_search
from examplanner.storage import LocalStore

MAX_RESULTS = 20


@dataclass
class AppContext:
    config: ExamPlannerConfig
    universe: List[ExamRecord]
    exam_by_id: Dict[str, ExamRecord]
    account: AccountService
    reconciler: ScheduleReconciler


def _build_account(config: ExamPlannerConfig) -> AccountService:
    """
    Remote account API when configured, otherwise the local account book.
    """
    if config.account_url:
        account = HttpAccountService(config.account_url, config.account_token, timeout=config.request_timeout)
        account.load()
        return account
    return FileAccountService(config.accounts_path)


def build_context(config: ExamPlannerConfig) -> AppContext:
    """
    Parse the catalogs once and resolve the schedule source.
    => Raises AccountUnavailable if the remote account cannot be loaded.
    """
    universe = load_catalog(catalog_dir(config.download_dir, config.raw_dir))

    exam_by_id: Dict[str, ExamRecord] = {}
    for exam in universe:
        # identical source rows share an id: keep the first
        exam_by_id.setdefault(exam.id, exam)

    account = _build_account(config)
    reconciler = ScheduleReconciler(account, LocalStore(config.local_store_path), config.storage_key)
    reconciler.sync_auth()

    return AppContext(
        config=config,
        universe=universe,
        exam_by_id=exam_by_id,
        account=account,
        reconciler=reconciler,
    )


def exam_line(exam: ExamRecord) -> str:
    """
    One-line plain text summary of an exam.
    """
    bits = [exam.id, exam.course, f"sec {exam.section}" if exam.section else "", exam.year, exam.exam_type]
    bits.append(f"{exam.start_time}-{exam.end_time}" if exam.end_time else exam.start_time)
    location = " / ".join(f"{b} {r}".strip() for b, r in exam.locations)
    if location:
        bits.append(f"@ {location}")
    if exam.course_title:
        bits.append(exam.course_title)
    return " | ".join(b for b in bits if b)


def _persist_failed(e: RemotePersistFailure) -> int:
    print(f"Warning: change kept locally but not saved to your account ({e}).")
    return 1


def _cmd_search(args: argparse.Namespace, ctx: AppContext) -> int:
    """
    Search exams by course code fragments (comma separated).
    """
    query = (args.text or "").strip()
    if not query:
        print("Please provide a search text.")
        return 1

    mode = ViewMode.HISTORICAL if args.historical else ViewMode.CURRENT
    matches = filter_exams(ctx.universe, query, mode, ctx.config.current_terms)

    if not matches:
        print("No results.")
        return 0

    for exam in matches[:MAX_RESULTS]:
        mark = "*" if ctx.reconciler.contains(exam.id) else " "
        print(f"{mark} {exam_line(exam)}")
    if len(matches) > MAX_RESULTS:
        print(f"... and {len(matches) - MAX_RESULTS} more results")

    return 0


def _cmd_add(args: argparse.Namespace, ctx: AppContext) -> int:
    """
    Add an exam (by id) to the schedule.
    """
    exam_id = (args.exam_id or "").strip()
    exam = ctx.exam_by_id.get(exam_id)
    if exam is None:
        print(f"Unknown exam id: {exam_id!r} (use 'search' to find ids).")
        return 1

    if ctx.reconciler.contains(exam.id):
        print(f"Already scheduled: {exam.course} ({exam.id})")
        return 0

    try:
        ctx.reconciler.toggle(exam)
    except RemotePersistFailure as e:
        return _persist_failed(e)

    print(f"Added: {exam.course} {exam.exam_type} (scheduled: {len(ctx.reconciler)})")
    return 0


def _cmd_remove(args: argparse.Namespace, ctx: AppContext) -> int:
    """
    Remove an exam (by id) from the schedule.
    """
    exam_id = (args.exam_id or "").strip()
    if not ctx.reconciler.contains(exam_id):
        print(f"Not scheduled: {exam_id}")
        return 0

    try:
        ctx.reconciler.remove(exam_id)
    except RemotePersistFailure as e:
        return _persist_failed(e)

    print(f"Removed: {exam_id} (scheduled: {len(ctx.reconciler)})")
    return 0


def _cmd_schedule(args: argparse.Namespace, ctx: AppContext) -> int:
    schedule = ctx.reconciler.schedule
    source = "account" if ctx.reconciler.state is ScheduleState.AUTHENTICATED else "this device"
    if not schedule:
        print(f"No exams scheduled ({source}).")
        return 0

    print(f"Scheduled exams ({len(schedule)}, saved on {source}):")
    for exam in schedule:
        print(f"- {exam_line(exam)}")
    return 0


def _cmd_conflicts(args: argparse.Namespace, ctx: AppContext) -> int:
    """
    Print exam clashes and 24-hour hardships in the schedule.
    """
    schedule = ctx.reconciler.schedule
    clashes = find_conflicts(schedule)
    hardships = find_hardships(schedule)

    if not clashes and not hardships:
        print("No conflicts found.")
        return 0

    if clashes:
        print(f"Conflicts found: {len(clashes)}")
        for a, b in clashes:
            print(f"- {a.course} {a.start_time}-{a.end_time}  <->  {b.course} {b.start_time}-{b.end_time}")

    if hardships:
        print(f"24-hour hardships: {len(hardships)}")
        for group in hardships:
            print("- " + ", ".join(f"{e.course} {e.start_time}" for e in group))

    return 0


def _cmd_export(args: argparse.Namespace, ctx: AppContext) -> int:
    """
    Export the schedule into an iCalendar (.ics) file.
    """
    schedule = ctx.reconciler.schedule
    if not schedule:
        print("No scheduled exams to export.")
        return 0

    out_path = (args.out or "").strip()
    if not out_path:
        print("Please provide output .ics path.")
        return 1

    n = export_exams_to_ics(schedule, out_path)
    print(f"Exported {n} exams to: {out_path}")
    return 0


def _cmd_login(args: argparse.Namespace, ctx: AppContext) -> int:
    if not isinstance(ctx.account, FileAccountService):
        print("Sign-in is handled by the account service (set EXAMPLANNER_ACCOUNT_TOKEN).")
        return 1

    email = (args.email or "").strip()
    if not email:
        print("Please provide an email.")
        return 1

    user = ctx.account.login(email, name=args.name or "")
    ctx.reconciler.sync_auth()
    print(f"Signed in as {user.name} <{user.email}> (scheduled: {len(ctx.reconciler)})")
    return 0


def _cmd_logout(args: argparse.Namespace, ctx: AppContext) -> int:
    if not ctx.account.is_authenticated:
        print("Not signed in.")
        return 0

    ctx.account.logout()
    ctx.reconciler.sync_auth()
    print(f"Signed out (scheduled on this device: {len(ctx.reconciler)})")
    return 0


def _cmd_whoami(args: argparse.Namespace, ctx: AppContext) -> int:
    user = ctx.account.user
    if user is None:
        print("Guest (schedule saved on this device).")
        return 0
    print(f"{user.name} <{user.email}> | scheduled: {len(user.saved_schedule)} | saved searches: {len(user.saved_searches)}")
    return 0


def _cmd_save_search(args: argparse.Namespace, ctx: AppContext) -> int:
    query = (args.text or "").strip()
    if not query:
        print("Please provide a search text.")
        return 1

    try:
        ok = save_search(ctx.account, query)
    except AccountError as e:
        print(f"Could not save search: {e}")
        return 1

    if not ok:
        print("Sign in to save searches.")
        return 1

    print(f"Saved search: {query}")
    return 0


def _cmd_searches(args: argparse.Namespace, ctx: AppContext) -> int:
    user = ctx.account.user
    if user is None:
        print("Sign in to see saved searches.")
        return 1
    if not user.saved_searches:
        print("No saved searches.")
        return 0
    for q in user.saved_searches:
        print(f"- {q}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="examplanner", description="Exam planner CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    p_search = sub.add_parser("search", help="Search exams by course code")
    p_search.add_argument("text", type=str, help="Comma separated course codes (e.g. 'COMP 202, MATH')")
    p_search.add_argument("--historical", action="store_true", help="Search past terms instead")

    p_add = sub.add_parser("add", help="Add exam by id")
    p_add.add_argument("exam_id", type=str, help="Exam id as shown by 'search'")

    p_remove = sub.add_parser("remove", help="Remove exam by id")
    p_remove.add_argument("exam_id", type=str, help="Exam id as shown by 'schedule'")

    sub.add_parser("schedule", help="Show scheduled exams")
    sub.add_parser("conflicts", help="Show clashes and 24-hour hardships")

    p_export = sub.add_parser("export", help="Export scheduled exams to .ics")
    p_export.add_argument("out", type=str, help="Output file path (e.g. exams.ics)")

    p_login = sub.add_parser("login", help="Sign in (local account book)")
    p_login.add_argument("email", type=str)
    p_login.add_argument("--name", type=str, default="")

    sub.add_parser("logout", help="Sign out")
    sub.add_parser("whoami", help="Show the current account")

    p_save = sub.add_parser("save-search", help="Save a search to your account")
    p_save.add_argument("text", type=str)

    sub.add_parser("searches", help="List saved searches")

    p_update = sub.add_parser("update", help="Download the raw catalogs into the state directory")
    p_update.add_argument("--refresh", action="store_true", help="Overwrite existing catalog files")

    sub.add_parser("interactive", help="Interactive menu mode")

    return parser


COMMANDS = {
    "search": _cmd_search,
    "add": _cmd_add,
    "remove": _cmd_remove,
    "schedule": _cmd_schedule,
    "conflicts": _cmd_conflicts,
    "export": _cmd_export,
    "login": _cmd_login,
    "logout": _cmd_logout,
    "whoami": _cmd_whoami,
    "save-search": _cmd_save_search,
    "searches": _cmd_searches,
}


def main(argv: list[str] | None = None, config: Optional[ExamPlannerConfig] = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    cfg = config or get_config()
    setup_logging(cfg.log_json, cfg.log_level)

    if args.command == "update":
        from examplanner.scrape import scrape_catalogs

        try:
            scrape_catalogs(cfg, refresh=args.refresh)
        except ScrapeError as e:
            print(f"Update failed: {e}")
            raise SystemExit(1)
        raise SystemExit(0)

    try:
        ctx = build_context(cfg)
    except AccountError as e:
        print(f"Account service unavailable: {e}")
        raise SystemExit(1)

    handler = COMMANDS.get(args.command)
    if handler is not None:
        raise SystemExit(handler(args, ctx))

    if args.command == "interactive":
        from examplanner.interactive import run_interactive

        run_interactive(ctx)
        raise SystemExit(0)

    raise SystemExit(2)
