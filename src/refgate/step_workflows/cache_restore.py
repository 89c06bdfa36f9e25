# step_workflows/cache_restore.py
from __future__ import annotations

from typing import Dict, List

from ..cache import compute_cache_key
from ..model import Step
from ..ui.console import get_console
from .base import StepContext

DEFAULT_KEEP = 3


def _split(value: str | None) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def run_step(ctx: StepContext, step: Step, secrets: Dict[str, str]) -> None:
    """
    Restore cached paths, then schedule a save for when the job succeeds.

    A miss is not an error; the save after a successful job fills it.
    """
    console = get_console()
    paths = _split(step.param("paths"))
    if not paths:
        console.print_info(f"[{ctx.job.name}] cache: no paths specified")
        return

    job_name = ctx.job.name
    key, manifest = compute_cache_key(
        job_name,
        paths,
        _split(step.param("key-files")),
        repo_root=ctx.repo_root,
    )
    hit = ctx.cache.restore(job_name, key, repo_root=ctx.repo_root)
    console.print_cache(job_name, hit.reason)
    if hit.hit:
        return

    keep = int(step.param("keep") or DEFAULT_KEEP)

    def save() -> None:
        ctx.cache.save(job_name, key, manifest, paths, repo_root=ctx.repo_root)
        ctx.cache.prune(job_name, keep=keep)
        console.print_cache(job_name, f"saved ({key[:12]}...)")

    ctx.on_success.append(save)
