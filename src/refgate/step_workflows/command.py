# step_workflows/command.py
from __future__ import annotations

import subprocess
from typing import Dict

from ..errors import CIError, StepFailure
from ..model import Step
from ..ui.console import get_console
from .base import StepContext

OUTPUT_TAIL = 4000


def run_step(ctx: StepContext, step: Step, secrets: Dict[str, str]) -> None:
    """Run a shell command step; non-zero exit raises StepFailure."""
    cmd = step.param("run")
    if not cmd:
        raise CIError(
            kind="invalid_step",
            job=ctx.job.name,
            step=step.name,
            message="command step has no 'run' parameter",
        )

    proc = subprocess.run(
        cmd,
        shell=True,
        cwd=str(ctx.workdir(step)),
        env=ctx.env_for(step, secrets),
        text=True,
        capture_output=True,   # so we can show output on failure
    )

    console = get_console()
    if proc.stdout:
        console.print_debug(proc.stdout.rstrip())

    if proc.returncode != 0:
        raise StepFailure(
            job=ctx.job.name,
            step=step.name,
            cmd=cmd,
            exit_code=proc.returncode,
            stdout=proc.stdout[-OUTPUT_TAIL:],
            stderr=proc.stderr[-OUTPUT_TAIL:],
        )
