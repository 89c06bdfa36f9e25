# step_workflows/checkout.py
from __future__ import annotations

import subprocess
from typing import Dict

from ..errors import CIError
from ..git_facts import git
from ..model import Step
from ..ui.console import get_console
from .base import StepContext


def run_step(ctx: StepContext, step: Step, secrets: Dict[str, str]) -> None:
    """
    Make sure the job runs against a git work tree, optionally at `ref`.

    Cloning is the source-control client's job; this only verifies the
    checkout and moves HEAD when a ref is requested.
    """
    root = str(ctx.repo_root)
    if not git.is_work_tree(cwd=root):
        raise CIError(
            kind="checkout_failed",
            job=ctx.job.name,
            step=step.name,
            message=f"{root} is not a git work tree",
        )

    ref = step.param("ref")
    if not ref:
        get_console().print_debug(f"[{ctx.job.name}] checkout: using HEAD {git.head_sha(cwd=root)[:12]}")
        return

    try:
        git.checkout(ref, cwd=root)
    except subprocess.CalledProcessError as e:
        raise CIError(
            kind="checkout_failed",
            job=ctx.job.name,
            step=step.name,
            message=f"git checkout {ref} failed",
            details={"stderr": (e.stderr or "").strip()},
        ) from e
