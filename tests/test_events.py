import json

import pytest

from refgate.events import event_from_env, event_from_options, event_from_webhook
from refgate.model import Event, EventError


def test_webhook_push_tag():
    ev = event_from_webhook("push", {"ref": "refs/tags/v1.2.3", "after": "abc"})
    assert ev == Event.push_tag("v1.2.3")


def test_webhook_push_branch():
    assert event_from_webhook("push", {"ref": "refs/heads/main"}) == Event.push_branch("main")


def test_webhook_pull_request():
    payload = {
        "action": "synchronize",
        "number": 7,
        "pull_request": {"base": {"ref": "main"}, "head": {"ref": "feature"}},
    }
    ev = event_from_webhook("pull_request", payload)
    assert ev.kind == "pull_request"
    assert ev.branch == "main"
    assert ev.pr_action == "synchronize"
    assert ev.ref == "feature"


def test_webhook_dispatch():
    ev = event_from_webhook("workflow_dispatch", {"ref": "refs/heads/main", "inputs": {}})
    assert ev.kind == "workflow_dispatch"
    assert ev.branch == "main"


def test_webhook_malformed_payload():
    with pytest.raises(EventError):
        event_from_webhook("pull_request", {"action": "opened"})


def test_webhook_unknown_event_kept_as_kind():
    ev = event_from_webhook("ping", {"zen": "Keep it logically awesome."})
    assert ev.kind == "ping"


def test_options_tag_and_branch():
    assert event_from_options("push", tag="v1.0.0") == Event.push_tag("v1.0.0")
    assert event_from_options("push", branch="main") == Event.push_branch("main")
    assert event_from_options("push", ref="refs/tags/v1.0.0") == Event.push_tag("v1.0.0")


def test_options_mutually_exclusive():
    with pytest.raises(EventError):
        event_from_options("push", tag="v1", branch="main")


def test_options_push_needs_ref():
    with pytest.raises(EventError):
        event_from_options("push")


def test_options_pull_request():
    ev = event_from_options("pull_request", base="refs/heads/main", action="opened")
    assert ev == Event.pull_request("main", "opened")
    with pytest.raises(EventError):
        event_from_options("pull_request", action="opened")


def test_env_push():
    env = {"GITHUB_EVENT_NAME": "push", "GITHUB_REF": "refs/tags/v0.9.0"}
    assert event_from_env(env) == Event.push_tag("v0.9.0")


def test_env_pull_request_reads_event_file(tmp_path):
    path = tmp_path / "event.json"
    path.write_text(json.dumps({"action": "opened", "pull_request": {"base": {"ref": "main"}}}))
    env = {
        "GITHUB_EVENT_NAME": "pull_request",
        "GITHUB_REF": "refs/pull/3/merge",
        "GITHUB_EVENT_PATH": str(path),
    }
    ev = event_from_env(env)
    assert ev.branch == "main"
    assert ev.pr_action == "opened"


def test_env_pull_request_without_payload_uses_base_ref():
    env = {"GITHUB_EVENT_NAME": "pull_request", "GITHUB_BASE_REF": "main"}
    assert event_from_env(env).branch == "main"


def test_env_missing_event_name():
    with pytest.raises(EventError):
        event_from_env({})
