# errors.py
from __future__ import annotations

from dataclasses import dataclass, field

from .dag import WorkflowConfigError
from .model import EventError
from .secrets import SecretResolutionError

__all__ = [
    "CIError",
    "StepFailure",
    "WorkflowConfigError",
    "EventError",
    "SecretResolutionError",
    "TOOL_HINTS",
]


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - debugging without full tracebacks
    """
    kind: str
    job: str
    step: str | None
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"job={self.job}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class StepFailure(Exception):
    job: str
    step: str
    cmd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


TOOL_HINTS = {
    "cargo": "Install the Rust toolchain (https://rustup.rs) or fix PATH.",
    "rustfmt": "Install rustfmt (rustup component add rustfmt).",
    "cargo-clippy": "Install clippy (rustup component add clippy).",
    "git": "Install Git or fix PATH.",
}
