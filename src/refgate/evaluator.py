# evaluator.py
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Union

from .dag import JobGraph, build_graph
from .model import Decision, Event, Job, JobStatus, Run

# Outcomes that stop a dependent from running.
_BLOCKING = {
    JobStatus.FAILED: "failed",
    JobStatus.SKIPPED: "skipped",
}


def _as_graph(graph: Union[JobGraph, Iterable[Job]]) -> JobGraph:
    if isinstance(graph, JobGraph):
        return graph
    return build_graph(graph)


def _decide(
    job: Job,
    event: Event,
    decided: Dict[str, Decision],
    outcomes: Mapping[str, JobStatus],
) -> Decision:
    verdict = job.run_condition(event)
    if not verdict.ok:
        return Decision(job.name, False, verdict.reason)

    for dep in job.needs:
        if not decided[dep].scheduled:
            return Decision(job.name, False, f"dependency '{dep}' not scheduled")

    for dep in job.needs:
        status = outcomes.get(dep)
        if status is not None and JobStatus(status) in _BLOCKING:
            return Decision(job.name, False, f"dependency '{dep}' {_BLOCKING[JobStatus(status)]}")

    return Decision(job.name, True, verdict.reason)


def evaluate(
    event: Event,
    graph: Union[JobGraph, Iterable[Job]],
    outcomes: Optional[Mapping[str, JobStatus]] = None,
) -> Run:
    """
    Decide which jobs run for `event`.

    Jobs are visited in topological order, so every dependency is decided
    before the jobs that need it. A job is scheduled only when its own
    condition holds and every dependency is scheduled. When `outcomes`
    reports a dependency as failed or skipped, the dependent is not
    scheduled either.

    Pure: no I/O, no environment reads. Passing an unvalidated job list
    raises WorkflowConfigError before anything is decided.
    """
    g = _as_graph(graph)
    outcomes = outcomes or {}

    decided: Dict[str, Decision] = {}
    ordered: List[Decision] = []
    for job in g:
        decision = _decide(job, event, decided, outcomes)
        decided[job.name] = decision
        ordered.append(decision)

    return Run(event=event, decisions=tuple(ordered))
