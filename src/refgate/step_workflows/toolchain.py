# step_workflows/toolchain.py
from __future__ import annotations

import subprocess
from typing import Dict, List

from ..errors import TOOL_HINTS, CIError
from ..model import Step
from .base import StepContext


def _tools(step: Step) -> List[str]:
    raw = step.param("tools") or ""
    return [t.strip() for t in raw.split(",") if t.strip()]


def _check_tool_available(ctx: StepContext, step: Step, tool: str) -> None:
    """Check a tool answers `--version`, raise a helpful error if not."""
    try:
        subprocess.run(
            [tool, "--version"],
            capture_output=True,
            check=True,
            env=ctx.env_for(step),
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        hint = TOOL_HINTS.get(tool, f"Install {tool} or fix PATH.")
        raise CIError(
            kind="tool_unavailable",
            job=ctx.job.name,
            step=step.name,
            message=f"{tool} is not available",
            details={"hint": hint, "tool": tool},
        )


def run_step(ctx: StepContext, step: Step, secrets: Dict[str, str]) -> None:
    for tool in _tools(step):
        _check_tool_available(ctx, step, tool)
