# events.py
# Build Event values from the outside world: CLI flags, CI environment
# variables, webhook payloads and the local git checkout. Only this layer
# looks at ambient state; the evaluator receives a finished Event.
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .model import (
    BRANCH_PREFIX,
    PULL_REQUEST,
    PUSH,
    TAG_PREFIX,
    WORKFLOW_DISPATCH,
    Event,
    EventError,
)


# -------------------- Webhook schemas --------------------

class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PushPayload(_Payload):
    ref: str


class BranchRef(_Payload):
    ref: str


class PullRequestBody(_Payload):
    base: BranchRef
    head: Optional[BranchRef] = None


class PullRequestPayload(_Payload):
    action: str
    pull_request: PullRequestBody


class DispatchPayload(_Payload):
    ref: str = ""
    inputs: dict[str, Any] = Field(default_factory=dict)


def _strip_branch(ref: str) -> str:
    return ref[len(BRANCH_PREFIX):] if ref.startswith(BRANCH_PREFIX) else ref


def event_from_webhook(event_name: str, payload: Mapping[str, Any]) -> Event:
    """
    Turn a webhook delivery into an Event.

    Unknown event names are kept as the event kind; they simply match no
    trigger. Malformed payloads for known kinds raise EventError.
    """
    try:
        if event_name == PUSH:
            body = PushPayload.model_validate(payload)
            return Event.from_ref(PUSH, body.ref)
        if event_name == PULL_REQUEST:
            body = PullRequestPayload.model_validate(payload)
            head = body.pull_request.head.ref if body.pull_request.head else ""
            return Event.pull_request(
                _strip_branch(body.pull_request.base.ref),
                body.action,
                ref=head,
            )
        if event_name == WORKFLOW_DISPATCH:
            body = DispatchPayload.model_validate(payload)
            return Event.dispatch(body.ref)
    except ValidationError as e:
        raise EventError(f"invalid {event_name} payload: {e.errors()}") from e

    ref = str(payload.get("ref", "") or "")
    return Event.from_ref(event_name, ref) if ref else Event(kind=event_name)


# -------------------- CLI options --------------------

def event_from_options(
    kind: str,
    *,
    ref: str | None = None,
    branch: str | None = None,
    tag: str | None = None,
    base: str | None = None,
    action: str | None = None,
) -> Event:
    """Event from explicit flags (`refgate plan --event push --tag v1.2.3`)."""
    if tag and branch:
        raise EventError("--tag and --branch are mutually exclusive")

    if kind == PULL_REQUEST:
        if not base:
            raise EventError("pull_request events need --base")
        return Event.pull_request(_strip_branch(base), action or "opened", ref=ref or "")

    if tag:
        ref = f"{TAG_PREFIX}{tag}"
    elif branch:
        ref = f"{BRANCH_PREFIX}{branch}"

    if kind == WORKFLOW_DISPATCH:
        return Event.dispatch(ref or "")
    if not ref:
        if kind == PUSH:
            raise EventError("push events need --ref, --branch or --tag")
        return Event(kind=kind)
    return Event.from_ref(kind, ref)


# -------------------- CI environment --------------------

def event_from_env(environ: Mapping[str, str]) -> Event:
    """
    Event from GitHub-Actions-style variables.

    GITHUB_EVENT_NAME and GITHUB_REF are required; pull requests also use
    GITHUB_BASE_REF and read the action from the JSON at GITHUB_EVENT_PATH.
    """
    name = environ.get("GITHUB_EVENT_NAME")
    if not name:
        raise EventError("GITHUB_EVENT_NAME is not set")
    ref = environ.get("GITHUB_REF", "")

    if name == PULL_REQUEST:
        payload = _read_event_payload(environ.get("GITHUB_EVENT_PATH"))
        if payload:
            return event_from_webhook(name, payload)
        base = environ.get("GITHUB_BASE_REF", "")
        if not base:
            raise EventError("pull_request event without GITHUB_BASE_REF or GITHUB_EVENT_PATH")
        return Event.pull_request(base, "opened", ref=ref)

    if name == WORKFLOW_DISPATCH:
        return Event.dispatch(ref)
    if not ref:
        if name == PUSH:
            raise EventError("GITHUB_REF is not set")
        return Event(kind=name)
    return Event.from_ref(name, ref)


def _read_event_payload(path: str | None) -> Optional[dict]:
    if not path:
        return None
    p = Path(path)
    if not p.exists():
        return None
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise EventError(f"could not parse event payload {p}: {e}") from e


# -------------------- Local git --------------------

def event_from_git(cwd: str | None = None) -> Event:
    """A push event for the current checkout: exact tag at HEAD wins over branch."""
    from .git_facts.git import current_branch, exact_tag

    tag = exact_tag(cwd=cwd)
    if tag:
        return Event.push_tag(tag)
    branch = current_branch(cwd=cwd)
    if not branch:
        raise EventError("detached HEAD without a tag; pass --ref explicitly")
    return Event.push_branch(branch)
