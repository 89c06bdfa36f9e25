# secrets.py
from __future__ import annotations

import os
from typing import Dict, Iterable, Mapping, Optional

from .model import Step


class SecretResolutionError(KeyError):
    """A secret a step asked for could not be resolved."""

    def __init__(self, name: str, job: str = "", step: str = ""):
        super().__init__(name)
        self.name = name
        self.job = job
        self.step = step

    def __str__(self) -> str:
        where = f"[{self.job}] step '{self.step}': " if self.job else ""
        return f"{where}secret {self.name!r} could not be resolved"


class SecretStore:
    """Named credential lookup. Subclasses implement `get`."""

    def get(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def resolve(self, names: Iterable[str]) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for name in sorted(names):
            value = self.get(name)
            if value is None or value == "":
                raise SecretResolutionError(name)
            out[name] = value
        return out


class MappingSecretStore(SecretStore):
    """Secrets from an in-memory mapping (tests, programmatic use)."""

    def __init__(self, values: Mapping[str, str] | None = None):
        self._values = dict(values or {})

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)


class EnvSecretStore(SecretStore):
    """
    Secrets from process environment variables.

    With a prefix, `CARGO_REGISTRY_TOKEN` is read from
    `<prefix>CARGO_REGISTRY_TOKEN`; the step still sees the bare name.
    """

    def __init__(self, prefix: str = "", environ: Mapping[str, str] | None = None):
        self.prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def get(self, name: str) -> Optional[str]:
        return self._environ.get(f"{self.prefix}{name}")


def resolve_step_secrets(store: SecretStore, job_name: str, step: Step) -> Dict[str, str]:
    """
    Resolve only the secrets `step` declares, tagging failures with job/step.

    Returns env var name -> value; the store is queried by each entry's
    store name, which is what a failure reports.
    """
    if not step.secrets:
        return {}
    try:
        values = store.resolve(set(step.secrets.values()))
    except SecretResolutionError as e:
        raise SecretResolutionError(e.name, job=job_name, step=step.name) from e
    return {env_name: values[source] for env_name, source in sorted(step.secrets.items())}
