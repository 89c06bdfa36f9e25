# conditions.py
from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Tuple

from .model import Event, PULL_REQUEST, PUSH, WORKFLOW_DISPATCH

NO_MATCHING_TRIGGER = "no matching trigger"
TAG_CONDITION_UNMET = "tag condition unmet"


# ---------------------------------------------------------------------
# Typed run conditions
# ---------------------------------------------------------------------
# A condition is a frozen, comparable object called with an Event. It
# returns a Verdict carrying the decision and a human readable reason,
# so the evaluator never has to invent explanations on its own.


@dataclass(frozen=True)
class Verdict:
    ok: bool
    reason: str

    def __bool__(self) -> bool:
        return self.ok


class Condition:
    def __call__(self, event: Event) -> Verdict:
        raise NotImplementedError

    def holds(self, event: Event) -> bool:
        return self(event).ok

    def describe(self) -> str:
        return type(self).__name__


def _matches_any(value: str, patterns: Tuple[str, ...]) -> bool:
    return any(fnmatchcase(value, p) for p in patterns)


@dataclass(frozen=True)
class PushTrigger(Condition):
    branches: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    def __call__(self, event: Event) -> Verdict:
        if event.kind != PUSH:
            return Verdict(False, NO_MATCHING_TRIGGER)
        if event.is_tag:
            if _matches_any(event.tag, self.tags):
                return Verdict(True, f"push of tag {event.tag}")
        elif _matches_any(event.branch, self.branches):
            return Verdict(True, f"push to branch {event.branch}")
        return Verdict(False, NO_MATCHING_TRIGGER)

    def describe(self) -> str:
        return f"push(branches={list(self.branches)}, tags={list(self.tags)})"


@dataclass(frozen=True)
class PullRequestTrigger(Condition):
    branches: Tuple[str, ...] = ()
    types: Tuple[str, ...] = ("opened", "synchronize")

    def __call__(self, event: Event) -> Verdict:
        if event.kind != PULL_REQUEST:
            return Verdict(False, NO_MATCHING_TRIGGER)
        if event.pr_action not in self.types:
            return Verdict(False, NO_MATCHING_TRIGGER)
        if not _matches_any(event.branch, self.branches):
            return Verdict(False, NO_MATCHING_TRIGGER)
        return Verdict(True, f"pull_request {event.pr_action} targeting {event.branch}")

    def describe(self) -> str:
        return f"pull_request(branches={list(self.branches)}, types={list(self.types)})"


@dataclass(frozen=True)
class DispatchTrigger(Condition):
    def __call__(self, event: Event) -> Verdict:
        if event.kind == WORKFLOW_DISPATCH:
            return Verdict(True, "manual dispatch")
        return Verdict(False, NO_MATCHING_TRIGGER)

    def describe(self) -> str:
        return "workflow_dispatch"


@dataclass(frozen=True)
class RefMatches(Condition):
    """Guard on the pushed tag ref, e.g. `refs/tags/v*`."""
    pattern: str
    label: str = ""

    def __call__(self, event: Event) -> Verdict:
        if event.is_tag and fnmatchcase(event.ref, self.pattern):
            return Verdict(True, f"matched tag pattern {self.label or self.pattern}")
        return Verdict(False, TAG_CONDITION_UNMET)

    def describe(self) -> str:
        return f"ref matches {self.pattern}"


@dataclass(frozen=True)
class AnyOf(Condition):
    conditions: Tuple[Condition, ...]

    def __call__(self, event: Event) -> Verdict:
        for cond in self.conditions:
            verdict = cond(event)
            if verdict.ok:
                return verdict
        return Verdict(False, NO_MATCHING_TRIGGER)

    def describe(self) -> str:
        return " | ".join(c.describe() for c in self.conditions)


@dataclass(frozen=True)
class AllOf(Condition):
    """First failing verdict wins; otherwise the last (most specific) passing one."""
    conditions: Tuple[Condition, ...]

    def __call__(self, event: Event) -> Verdict:
        verdict = Verdict(True, "unconditional")
        for cond in self.conditions:
            verdict = cond(event)
            if not verdict.ok:
                return verdict
        return verdict

    def describe(self) -> str:
        return " & ".join(f"({c.describe()})" for c in self.conditions)


@dataclass(frozen=True)
class Always(Condition):
    def __call__(self, event: Event) -> Verdict:
        return Verdict(True, "unconditional")

    def describe(self) -> str:
        return "always"


# ---------------------------------------------------------------------
# Helpers (DSL-facing)
# ---------------------------------------------------------------------

def on_push(*, branches=(), tags=()) -> PushTrigger:
    return PushTrigger(branches=tuple(branches), tags=tuple(tags))


def on_pull_request(*, branches=(), types=("opened", "synchronize")) -> PullRequestTrigger:
    return PullRequestTrigger(branches=tuple(branches), types=tuple(types))


def on_dispatch() -> DispatchTrigger:
    return DispatchTrigger()


def ref_matches(pattern: str, label: str = "") -> RefMatches:
    if not label and pattern.startswith("refs/tags/"):
        label = pattern[len("refs/tags/"):]
    return RefMatches(pattern=pattern, label=label)


def any_of(*conditions: Condition) -> AnyOf:
    return AnyOf(tuple(conditions))


def all_of(*conditions: Condition) -> Condition:
    conds = tuple(c for c in conditions if c is not None and not isinstance(c, Always))
    if not conds:
        return Always()
    if len(conds) == 1:
        return conds[0]
    return AllOf(conds)
