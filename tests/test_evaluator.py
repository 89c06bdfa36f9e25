import pytest

from refgate.dag import WorkflowConfigError, build_graph
from refgate.dsl import job, sh
from refgate.evaluator import evaluate
from refgate.model import Event, JobStatus
from refgate.pipeline import release_pipeline


@pytest.fixture
def graph():
    return build_graph(release_pipeline())


def _states(run):
    return {d.job: d.scheduled for d in run}


@pytest.mark.parametrize("branch", ["dev", "release/1.x", "feature/main"])
@pytest.mark.parametrize("action", ["opened", "synchronize"])
def test_pull_request_off_main_schedules_nothing(graph, branch, action):
    run = evaluate(Event.pull_request(branch, action), graph)
    assert run.scheduled == []
    assert all(d.reason == "no matching trigger" for d in run)


def test_pull_request_to_main(graph):
    run = evaluate(Event.pull_request("main", "opened"), graph)
    assert _states(run) == {"checks": True, "build": True, "publish": False}
    assert run["checks"].reason == "pull_request opened targeting main"
    assert run["publish"].reason == "tag condition unmet"


def test_pull_request_closed_is_ignored(graph):
    run = evaluate(Event.pull_request("main", "closed"), graph)
    assert run.scheduled == []


def test_version_tag_schedules_everything(graph):
    run = evaluate(Event.push_tag("v1.2.3"), graph)
    assert _states(run) == {"checks": True, "build": True, "publish": True}
    assert run["publish"].reason == "matched tag pattern v*"


def test_version_tag_publish_follows_build_outcome(graph):
    ok = evaluate(Event.push_tag("v1.2.3"), graph, {"build": JobStatus.SUCCEEDED})
    assert ok["publish"].scheduled

    bad = evaluate(Event.push_tag("v1.2.3"), graph, {"build": JobStatus.FAILED})
    assert not bad["publish"].scheduled
    assert bad["publish"].reason == "dependency 'build' failed"
    assert bad["checks"].scheduled and bad["build"].scheduled


def test_scenario_tag_v0_9_0_with_build_succeeded(graph):
    ev = Event(kind="push", ref="refs/tags/v0.9.0", is_tag=True)
    run = evaluate(ev, graph, {"build": JobStatus.SUCCEEDED})
    assert run.scheduled == ["checks", "build", "publish"]


def test_non_version_tag_does_not_publish(graph):
    run = evaluate(Event.push_tag("nightly-2024"), graph)
    assert _states(run) == {"checks": True, "build": True, "publish": False}
    assert run["publish"].reason == "tag condition unmet"


@pytest.mark.parametrize("outcome", [None, JobStatus.SUCCEEDED, JobStatus.FAILED])
def test_push_main_never_publishes(graph, outcome):
    outcomes = {"build": outcome} if outcome else None
    run = evaluate(Event.push_branch("main"), graph, outcomes)
    assert run["checks"].scheduled and run["build"].scheduled
    assert not run["publish"].scheduled
    assert run["publish"].reason == "tag condition unmet"


def test_push_other_branch_schedules_nothing(graph):
    assert evaluate(Event.push_branch("dev"), graph).scheduled == []


def test_workflow_dispatch_scenario(graph):
    run = evaluate(Event.dispatch(), graph)
    assert run["checks"].scheduled
    assert run["build"].scheduled
    assert not run["publish"].scheduled
    assert run["publish"].reason == "tag condition unmet"


def test_unknown_event_kind_is_not_an_error(graph):
    run = evaluate(Event(kind="schedule"), graph)
    assert run.scheduled == []
    assert {d.reason for d in run} == {"no matching trigger"}


def test_evaluation_is_idempotent(graph):
    ev = Event.push_tag("v1.2.3")
    assert evaluate(ev, graph) == evaluate(ev, graph)


def test_decisions_follow_topological_order(graph):
    run = evaluate(Event.dispatch(), graph)
    assert [d.job for d in run] == ["checks", "build", "publish"]


def test_unscheduled_dependency_blocks_dependent():
    from refgate.conditions import on_dispatch, on_push

    jobs = [
        job("build", sh("b", "true"), when=on_push(branches=["main"])),
        job("publish", sh("p", "true"), needs=["build"], when=on_dispatch()),
    ]
    run = evaluate(Event.dispatch(), jobs)
    assert not run["build"].scheduled
    assert run["publish"].reason == "dependency 'build' not scheduled"


def test_skipped_dependency_outcome_blocks_dependent(graph):
    run = evaluate(Event.push_tag("v1.0.0"), graph, {"build": JobStatus.SKIPPED})
    assert run["publish"].reason == "dependency 'build' skipped"


def test_list_input_is_validated_first():
    jobs = [
        job("a", sh("a", "true"), needs=["b"]),
        job("b", sh("b", "true"), needs=["a"]),
    ]
    with pytest.raises(WorkflowConfigError):
        evaluate(Event.dispatch(), jobs)
