from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Settings:
    workers: Optional[int]
    cache_dir: str
    secret_prefix: str
    workflow: Optional[str]


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    workers = env.get("REFGATE_WORKERS")
    return Settings(
        workers=int(workers) if workers else None,
        cache_dir=env.get("REFGATE_CACHE_DIR", ".refgate/cache"),
        secret_prefix=env.get("REFGATE_SECRET_PREFIX", ""),
        workflow=env.get("REFGATE_WORKFLOW") or None,
    )
