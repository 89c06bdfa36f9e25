from .conditions import all_of, any_of, on_dispatch, on_pull_request, on_push, ref_matches
from .dag import JobGraph, WorkflowConfigError, build_graph
from .dsl import JobBuilder, build, job, sh, uses, wf
from .evaluator import evaluate
from .model import Decision, Event, EventError, Job, JobStatus, Run, Step
from .pipeline import release_pipeline
from .runner import execute, load_workflow

__all__ = [
    "job", "sh", "uses", "wf", "JobBuilder", "build",
    "on_push", "on_pull_request", "on_dispatch", "ref_matches", "any_of", "all_of",
    "build_graph", "JobGraph", "WorkflowConfigError",
    "evaluate", "execute", "load_workflow", "release_pipeline",
    "Event", "EventError", "Job", "Step", "Decision", "Run", "JobStatus",
]
