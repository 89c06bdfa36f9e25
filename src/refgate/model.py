# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterator, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from .conditions import Condition


PUSH = "push"
PULL_REQUEST = "pull_request"
WORKFLOW_DISPATCH = "workflow_dispatch"

EVENT_KINDS = (PUSH, PULL_REQUEST, WORKFLOW_DISPATCH)

TAG_PREFIX = "refs/tags/"
BRANCH_PREFIX = "refs/heads/"


class EventError(ValueError):
    """Raised when an event descriptor is malformed."""


class JobStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Event:
    """
    One trigger occurrence.

    Tag pushes and branch pushes are separate variants: a tag push carries
    `is_tag=True`, a `refs/tags/...` ref and no branch; a branch push carries
    the branch and a `refs/heads/...` ref. Use the classmethod constructors
    rather than filling the fields by hand.
    """
    kind: str
    ref: str = ""
    is_tag: bool = False
    branch: str = ""
    pr_action: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.kind:
            raise EventError("event kind is required")
        if self.kind == PUSH and not self.ref:
            raise EventError("push events require a ref")
        if self.ref.startswith(TAG_PREFIX) and not self.is_tag:
            raise EventError(f"ref {self.ref!r} is a tag ref; build tag events with is_tag=True")
        if self.is_tag:
            if not self.ref.startswith(TAG_PREFIX):
                raise EventError(f"tag event ref must start with {TAG_PREFIX!r}, got {self.ref!r}")
            if self.branch:
                raise EventError("a tag push is not a push to a branch; branch must be empty")
        if self.kind == PULL_REQUEST and not self.branch:
            raise EventError("pull_request events require a target branch")

    # ---- constructors ----

    @classmethod
    def push_branch(cls, branch: str) -> Event:
        return cls(kind=PUSH, ref=f"{BRANCH_PREFIX}{branch}", branch=branch)

    @classmethod
    def push_tag(cls, tag: str) -> Event:
        return cls(kind=PUSH, ref=f"{TAG_PREFIX}{tag}", is_tag=True)

    @classmethod
    def pull_request(cls, base: str, action: str, *, ref: str = "") -> Event:
        return cls(kind=PULL_REQUEST, ref=ref, branch=base, pr_action=action)

    @classmethod
    def dispatch(cls, ref: str = "") -> Event:
        if ref.startswith(TAG_PREFIX):
            return cls(kind=WORKFLOW_DISPATCH, ref=ref, is_tag=True)
        branch = ref[len(BRANCH_PREFIX):] if ref.startswith(BRANCH_PREFIX) else ""
        return cls(kind=WORKFLOW_DISPATCH, ref=ref, branch=branch)

    @classmethod
    def from_ref(cls, kind: str, ref: str, **extra) -> Event:
        """Build an event from a full git ref, deriving the tag/branch variant."""
        if ref.startswith(TAG_PREFIX):
            return cls(kind=kind, ref=ref, is_tag=True, **extra)
        if ref.startswith(BRANCH_PREFIX):
            return cls(kind=kind, ref=ref, branch=ref[len(BRANCH_PREFIX):], **extra)
        return cls(kind=kind, ref=ref, **extra)

    @property
    def tag(self) -> str:
        return self.ref[len(TAG_PREFIX):] if self.is_tag else ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "ref": self.ref,
            "is_tag": self.is_tag,
            "branch": self.branch,
            "pr_action": self.pr_action,
        }


@dataclass(frozen=True)
class Step:
    """A single action inside a job. Execution is delegated to a step handler."""
    name: str
    action: str
    parameters: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    # env var name -> secret store name, resolved for this step only
    secrets: Mapping[str, str] = field(default_factory=dict)

    def param(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.parameters.get(key, default)


@dataclass
class Job:
    """A named unit of work: trigger condition + dependencies + steps."""
    name: str
    steps: List[Step]
    run_condition: "Condition"
    needs: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    title: str = ""

    @property
    def secrets(self) -> frozenset:
        """Env var names this job's steps receive from the secret store."""
        out: set = set()
        for step in self.steps:
            out.update(step.secrets)
        return frozenset(out)

    @property
    def secret_sources(self) -> frozenset:
        """Secret store names this job reads."""
        out: set = set()
        for step in self.steps:
            out.update(step.secrets.values())
        return frozenset(out)


@dataclass(frozen=True)
class Decision:
    job: str
    scheduled: bool
    reason: str

    def to_dict(self) -> Dict[str, object]:
        return {"job": self.job, "scheduled": self.scheduled, "reason": self.reason}


@dataclass(frozen=True)
class Run:
    """
    Resolved scheduling decisions for one Event.

    Decisions are kept in evaluation (topological) order. Lookup by job
    name is supported through the mapping-style accessors.
    """
    event: Event
    decisions: Tuple[Decision, ...]

    def __getitem__(self, name: str) -> Decision:
        for d in self.decisions:
            if d.job == name:
                return d
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(d.job == name for d in self.decisions)

    def __iter__(self) -> Iterator[Decision]:
        return iter(self.decisions)

    def __len__(self) -> int:
        return len(self.decisions)

    @property
    def scheduled(self) -> List[str]:
        return [d.job for d in self.decisions if d.scheduled]

    @property
    def skipped(self) -> List[str]:
        return [d.job for d in self.decisions if not d.scheduled]

    def to_dict(self) -> Dict[str, object]:
        return {
            "event": self.event.to_dict(),
            "jobs": [d.to_dict() for d in self.decisions],
        }
