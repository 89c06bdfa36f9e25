"""Console output formatting utilities for refgate."""

from __future__ import annotations

import sys
from typing import Mapping, Optional

from ..model import JobStatus, Run


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_event(self, run: Run) -> None:
        """Print the event a run was evaluated for."""
        ev = run.event
        print("\nEVENT")
        print(f"Kind: {ev.kind}")
        if ev.ref:
            print(f"Ref: {ev.ref}")
        if ev.is_tag:
            print(f"Tag: {ev.tag}")
        elif ev.branch:
            print(f"Branch: {ev.branch}")
        if ev.pr_action:
            print(f"Action: {ev.pr_action}")

    def print_plan(self, run: Run) -> None:
        """Print each job's scheduling decision in evaluation order."""
        self.print_header("PLAN")
        for d in run:
            mark = "scheduled" if d.scheduled else "skipped"
            print(f"  {d.job}: {mark} ({d.reason})")

    def print_run_started(self, workflow: str, job_count: int, scheduled: int) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Workflow: {workflow}")
        print(f"Jobs: {job_count} ({scheduled} scheduled)")
        print()

    def print_job_start(self, name: str) -> None:
        print(f"\nJOB STARTED: {name}")

    def print_step(self, job: str, name: str) -> None:
        print(f"[{job}] STEP: {name}")

    def print_job_done(self, name: str, status: JobStatus) -> None:
        print(f"[{name}] STATUS: {status.value}")

    def print_job_canceled(self, name: str, because: str) -> None:
        print(f"[{name}] STATUS: skipped (canceled, dependency '{because}' did not succeed)")

    def print_job_not_started(self, name: str) -> None:
        print(f"[{name}] STATUS: skipped (not started, fail-fast)")

    def print_cache(self, job: str, reason: str) -> None:
        print(f"[{job}] CACHE: {reason}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        output: Optional[str] = None,
    ) -> None:
        """
        Print job failure message.

        Args:
            name: Job name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
            output: Optional tail of the failing command's output
        """
        print(f"JOB FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # first line of error for non-debug mode
            print(f"Error: {reason.splitlines()[0] if reason else 'Unknown error'}")
        if output:
            print(output.rstrip())

    def print_results(self, results: Mapping[str, JobStatus], reasons: Optional[Mapping[str, str]] = None) -> None:
        """Print final results summary, with reasons for skipped jobs when known."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for job, status in results.items():
            line = f"  {job}: {status.value.upper()}"
            if reasons and job in reasons:
                line += f" ({reasons[job]})"
            print(line)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """Print structured error message to stderr."""
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
