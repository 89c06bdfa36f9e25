# cli.py
from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from .dag import JobGraph, WorkflowConfigError, build_graph
from .evaluator import evaluate
from .events import event_from_env, event_from_git, event_from_options
from .model import EVENT_KINDS, Event, EventError, JobStatus
from .pipeline import release_pipeline
from .runner import execute, load_workflow, scrubbed_environ, skip_reasons
from .secrets import EnvSecretStore
from .settings import load_settings
from .ui.console import Console, get_console, set_console

EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def _load_graph(workflow: str | None) -> tuple[JobGraph, str]:
    """Load a workflow file, or fall back to the built-in release pipeline."""
    console = get_console()
    path = workflow or load_settings().workflow
    if not path:
        return build_graph(release_pipeline()), "release (built-in)"

    workflow_path = Path(path)
    if not workflow_path.exists() and workflow_path.suffix != ".py":
        workflow_path = Path(str(workflow_path) + ".py")
    if not workflow_path.exists():
        console.print_error(
            "Workflow file not found",
            f"Could not find workflow file: {path}",
            suggestion="Specify a different path:\n  refgate plan --workflow my_workflow.py",
        )
        sys.exit(EXIT_FAILED)
    return load_workflow(workflow_path), workflow_path.name


def _resolve_event(from_env, from_git, kind, ref, branch, tag, base, action) -> Event:
    if from_env:
        return event_from_env(os.environ)
    if from_git:
        return event_from_git()
    if not kind:
        raise EventError("no event given; use --event, --from-env or --from-git")
    return event_from_options(kind, ref=ref, branch=branch, tag=tag, base=base, action=action)


_EVENT_OPTIONS = [
    click.option("--event", "kind", default=None, help=f"Event kind ({', '.join(EVENT_KINDS)})"),
    click.option("--ref", default=None, help="Full git ref, e.g. refs/tags/v1.2.3"),
    click.option("--branch", default=None, help="Pushed branch (shorthand for --ref refs/heads/<branch>)"),
    click.option("--tag", default=None, help="Pushed tag (shorthand for --ref refs/tags/<tag>)"),
    click.option("--base", default=None, help="Pull request target branch"),
    click.option(
        "--action",
        default=None,
        type=click.Choice(["opened", "synchronize", "reopened", "closed", "edited"]),
        help="Pull request action",
    ),
    click.option("--from-env", is_flag=True, default=False, help="Read the event from GITHUB_* variables"),
    click.option("--from-git", is_flag=True, default=False, help="Treat the current checkout as a push"),
    click.option("--workflow", default=None, help="Workflow file path (defaults to the built-in release pipeline)"),
]


def event_options(fn):
    """Shared options describing the triggering event."""
    for option in reversed(_EVENT_OPTIONS):
        fn = option(fn)
    return fn


def _guard(ctx, fn, *args, **kwargs):
    """Map known errors to console output and exit codes."""
    console = get_console()
    try:
        return fn(*args, **kwargs)
    except WorkflowConfigError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)
    except EventError as e:
        console.print_error("Invalid event", str(e))
        sys.exit(EXIT_CONFIG)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        console.print_exception(e)
        sys.exit(EXIT_FAILED)


def _parse_outcomes(values) -> dict[str, JobStatus]:
    out: dict[str, JobStatus] = {}
    for raw in values:
        name, sep, status = raw.partition("=")
        if not sep:
            raise click.BadParameter(f"expected JOB=STATUS, got {raw!r}", param_hint="--outcome")
        try:
            out[name] = JobStatus(status.lower())
        except ValueError:
            raise click.BadParameter(
                f"unknown status {status!r} (succeeded, failed, skipped)", param_hint="--outcome"
            )
    return out


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and command output)",
)
@click.pass_context
def cli(ctx, debug):
    """refgate: decide which CI jobs run for a git event, then run them."""
    set_console(Console(debug=debug))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@event_options
@click.option("--outcome", multiple=True, help="Known job outcome, e.g. build=failed (repeatable)")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the plan as JSON")
@click.pass_context
def plan(ctx, kind, ref, branch, tag, base, action, from_env, from_git, workflow, outcome, as_json):
    """Show which jobs an event schedules, and why."""
    outcomes = _parse_outcomes(outcome)

    def _plan():
        graph, _name = _load_graph(workflow)
        event = _resolve_event(from_env, from_git, kind, ref, branch, tag, base, action)
        return evaluate(event, graph, outcomes)

    run = _guard(ctx, _plan)
    console = get_console()
    if as_json:
        console.print_info(json.dumps(run.to_dict(), indent=2))
        return
    console.print_event(run)
    console.print_plan(run)


@cli.command()
@event_options
@click.option("--workers", default=None, type=int, help="Number of parallel workers")
@click.option("--cache-dir", default=None, help="Cache directory")
@click.option("--secret-prefix", default=None, help="Prefix of env vars holding secrets")
@click.option("--fail-fast/--no-fail-fast", default=False, help="Stop starting new jobs after the first failure")
@click.option("--dry-run", is_flag=True, default=False, help="Only print the plan")
@click.pass_context
def run(ctx, kind, ref, branch, tag, base, action, from_env, from_git, workflow,
        workers, cache_dir, secret_prefix, fail_fast, dry_run):
    """Evaluate an event and execute the scheduled jobs."""
    console = get_console()
    settings = load_settings()
    prefix = settings.secret_prefix if secret_prefix is None else secret_prefix

    def _evaluate():
        graph, name = _load_graph(workflow)
        event = _resolve_event(from_env, from_git, kind, ref, branch, tag, base, action)
        return graph, name, evaluate(event, graph)

    graph, name, planned = _guard(ctx, _evaluate)
    console.print_event(planned)
    console.print_plan(planned)
    if dry_run:
        return

    console.print_run_started(workflow=name, job_count=len(graph), scheduled=len(planned.scheduled))
    results = _guard(
        ctx,
        execute,
        planned,
        graph,
        secrets=EnvSecretStore(prefix=prefix),
        repo_root=".",
        cache_root=cache_dir or settings.cache_dir,
        max_workers=workers if workers is not None else settings.workers,
        fail_fast=fail_fast,
        base_env=scrubbed_environ(graph, prefix),
    )

    # re-evaluate with the outcomes so skipped dependents cite the failed job
    final = evaluate(planned.event, graph, results)
    console.print_results(results, skip_reasons(final, results))

    if any(v is JobStatus.FAILED for v in results.values()):
        sys.exit(EXIT_FAILED)


@cli.command()
@click.option("--workflow", default=None, help="Workflow file path (defaults to the built-in release pipeline)")
@click.pass_context
def jobs(ctx, workflow):
    """List jobs in evaluation order with their dependencies and conditions."""
    graph, name = _guard(ctx, _load_graph, workflow)
    console = get_console()
    console.print_header(f"JOBS ({name})")
    for job in graph:
        needs = ", ".join(job.needs) or "-"
        console.print_info(f"  {job.name}  needs: {needs}")
        console.print_info(f"    when: {job.run_condition.describe()}")
        if job.secrets:
            console.print_info(f"    secrets: {', '.join(sorted(job.secrets))}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
