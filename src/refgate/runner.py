# runner.py
# Executor layer: takes an evaluated Run and actually runs the scheduled
# jobs. This is the only place (besides the CLI/server) that touches the
# process environment.
from __future__ import annotations

import os
import runpy
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .cache import DEFAULT_CACHE_DIR, CacheStore
from .dag import JobGraph, WorkflowConfigError, build_graph
from .errors import CIError, StepFailure
from .model import Job, JobStatus, Run
from .secrets import MappingSecretStore, SecretStore, resolve_step_secrets
from .step_workflows import DEFAULT_HANDLERS, StepContext, StepHandler
from .ui.console import get_console


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> JobGraph:
    """
    Load a workflow from a python file path and validate its graph.

    The file must define either:
      - workflow() -> List[Job]
      - JOBS = [Job, ...]

    Graph errors (cycles, unknown dependencies) raise WorkflowConfigError
    here, before any event is evaluated.
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"refgate_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    jobs = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        jobs = globals_dict["workflow"]()
    elif "JOBS" in globals_dict:
        jobs = globals_dict["JOBS"]

    if not isinstance(jobs, list) or not all(isinstance(j, Job) for j in jobs):
        raise WorkflowConfigError(
            "Workflow must return/define a List[Job]. "
            "Define workflow() -> List[Job] or JOBS = [Job, ...]."
        )

    return build_graph(jobs)


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def scrubbed_environ(graph: JobGraph, secret_prefix: str = "", environ: Mapping[str, str] | None = None) -> Dict[str, str]:
    """
    Process env minus every secret any job declares.

    Secrets reach a step only through the secret store, and only for the
    step that lists them.
    """
    env = os.environ if environ is None else environ
    names = set()
    for job in graph.jobs:
        names.update(job.secrets)
        names.update(job.secret_sources)
    return {
        k: v
        for k, v in env.items()
        if k not in names and not (secret_prefix and k.startswith(secret_prefix))
    }


def _run_job(
    job: Job,
    ctx: StepContext,
    secrets: SecretStore,
    handlers: Mapping[str, StepHandler],
) -> JobStatus:
    """
    Run every step of a job in order. Raises on the first failure.

    Secrets are resolved for all steps before the first step starts, so a
    missing credential never leaves the job half-executed.
    """
    console = get_console()
    console.print_job_start(job.name)

    resolved = [resolve_step_secrets(secrets, job.name, step) for step in job.steps]

    for step, step_secrets in zip(job.steps, resolved):
        handler = handlers.get(step.action)
        if handler is None:
            raise CIError(
                kind="unknown_action",
                job=job.name,
                step=step.name,
                message=f"no handler for action {step.action!r}",
                details={"known": sorted(handlers)},
            )
        console.print_step(job.name, step.name)
        handler(ctx, step, step_secrets)

    for callback in ctx.on_success:
        callback()

    return JobStatus.SUCCEEDED


def _report_failure(name: str, exc: BaseException) -> None:
    console = get_console()
    if isinstance(exc, StepFailure):
        console.print_failure(name, str(exc), exit_code=exc.exit_code, output=exc.stderr or exc.stdout)
    elif isinstance(exc, CIError):
        console.print_failure(name, str(exc), hint=exc.details.get("hint"))
    else:
        console.print_failure(name, str(exc))


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def execute(
    run: Run,
    graph: JobGraph,
    *,
    secrets: Optional[SecretStore] = None,
    repo_root: str | Path = ".",
    cache_root: str | Path = DEFAULT_CACHE_DIR,
    max_workers: int | None = None,
    fail_fast: bool = False,
    handlers: Optional[Mapping[str, StepHandler]] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> Dict[str, JobStatus]:
    """
    Execute the scheduled jobs of `run`.

    Jobs with no dependency edge between them run concurrently. A job
    starts only after all its dependencies succeeded; when a dependency
    fails, every transitive dependent is skipped without running a step.
    Unscheduled jobs are reported as skipped. Nothing is retried.

    Returns job name -> terminal status, in evaluation order.
    """
    console = get_console()
    repo_root_p = Path(repo_root).resolve()
    cache = CacheStore(cache_root)
    secrets = secrets or MappingSecretStore()
    handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)
    env = dict(scrubbed_environ(graph) if base_env is None else base_env)
    by_name = graph.by_name

    statuses: Dict[str, JobStatus] = {}
    for d in run:
        if not d.scheduled:
            statuses[d.job] = JobStatus.SKIPPED

    # a scheduled job's dependencies are all scheduled, so only count those
    indeg: Dict[str, int] = {
        name: len(set(by_name[name].needs)) for name in run.scheduled
    }
    ready: List[str] = [name for name in run.scheduled if indeg[name] == 0]

    if max_workers is None:
        c = os.cpu_count() or 2
        max_workers = max(1, c - 1)

    in_flight: Dict[Future, str] = {}
    failed = False

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        while ready or in_flight:
            # schedule all currently ready
            while ready and not (fail_fast and failed):
                name = ready.pop(0)
                ctx = StepContext(job=by_name[name], repo_root=repo_root_p, base_env=env, cache=cache)
                fut = pool.submit(_run_job, by_name[name], ctx, secrets, handlers)
                in_flight[fut] = name

            if not in_flight:
                break

            # wait for one completion, then loop to schedule newly-ready jobs
            fut = next(as_completed(list(in_flight.keys())))
            name = in_flight.pop(fut)

            try:
                statuses[name] = fut.result()
            except Exception as e:
                statuses[name] = JobStatus.FAILED
                _report_failure(name, e)
                failed = True
            console.print_job_done(name, statuses[name])

            if statuses[name] is JobStatus.SUCCEEDED:
                for child in graph.dependents(name):
                    if child in indeg and child not in statuses:
                        indeg[child] -= 1
                        if indeg[child] == 0:
                            ready.append(child)
            else:
                for child in graph.transitive_dependents(name):
                    if child not in statuses:
                        statuses[child] = JobStatus.SKIPPED
                        console.print_job_canceled(child, name)

    # fail_fast leaves never-started jobs behind
    for name in run.scheduled:
        if name not in statuses:
            statuses[name] = JobStatus.SKIPPED
            console.print_job_not_started(name)

    return {d.job: statuses[d.job] for d in run}


NOT_STARTED = "not started (fail-fast)"


def skip_reasons(final: Run, results: Mapping[str, JobStatus]) -> Dict[str, str]:
    """
    Reason for every skipped job in `results`.

    `final` is the Run re-evaluated with `results` as outcomes. A job it
    still schedules yet `results` marks skipped was never started, which
    only fail-fast does; its decision reason would describe the trigger,
    not the skip.
    """
    out: Dict[str, str] = {}
    for name, status in results.items():
        if status is not JobStatus.SKIPPED or name not in final:
            continue
        decision = final[name]
        out[name] = NOT_STARTED if decision.scheduled else decision.reason
    return out
