# step_workflows/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List

from ..cache import CacheStore
from ..model import Job, Step


@dataclass
class StepContext:
    """Everything a step handler may touch while running one job."""
    job: Job
    repo_root: Path
    # inherited process env with secret variables already removed
    base_env: Dict[str, str]
    cache: CacheStore
    # callbacks run once every step of the job succeeded (e.g. cache save)
    on_success: List[Callable[[], None]] = field(default_factory=list)

    def env_for(self, step: Step, secrets: Dict[str, str] | None = None) -> Dict[str, str]:
        env = dict(self.base_env)
        env.update(self.job.env)
        env.update(step.env)
        env.update(secrets or {})
        return env

    def workdir(self, step: Step) -> Path:
        cwd = (self.repo_root / (step.param("working-directory") or ".")).resolve()
        if not cwd.exists():
            raise FileNotFoundError(f"[{self.job.name}] step '{step.name}' cwd not found: {cwd}")
        return cwd


StepHandler = Callable[[StepContext, Step, Dict[str, str]], None]
