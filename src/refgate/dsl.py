# src/refgate/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .conditions import Always, Condition, all_of
from .model import Job, Step


COMMAND = "command"
CHECKOUT = "checkout"
TOOLCHAIN_SETUP = "toolchain-setup"
CACHE_RESTORE = "cache-restore"

# either env names (read from the store under the same name)
# or an explicit {env name: store name} mapping
Secrets = Union[Iterable[str], Mapping[str, str]]


def _secret_map(secrets: Secrets) -> Dict[str, str]:
    if isinstance(secrets, Mapping):
        return {str(k): str(v) for k, v in secrets.items()}
    return {name: name for name in secrets}


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
    secrets: Secrets = (),
) -> Step:
    """
    Create a shell command step.

    `secrets` lists env var names filled from the secret store, or maps
    env var name -> store name when they differ:

        sh("Publish", "cargo publish", secrets={"CARGO_REGISTRY_TOKEN": "CRATES_IO_TOKEN"})
    """
    params = {"run": cmd}
    if cwd is not None:
        params["working-directory"] = cwd
    return Step(
        name=name,
        action=COMMAND,
        parameters=params,
        env={k: str(v) for k, v in (env or {}).items()},
        secrets=_secret_map(secrets),
    )


def uses(
    action: str,
    name: str | None = None,
    *,
    env: Optional[Dict[str, str]] = None,
    secrets: Secrets = (),
    **params: str,
) -> Step:
    """
    Create an action step, e.g. uses("cache-restore", paths="target").

    Keyword names use underscores; they are stored with dashes
    (key_files -> key-files).
    """
    parameters = {k.replace("_", "-"): str(v) for k, v in params.items()}
    return Step(
        name=name or action,
        action=action,
        parameters=parameters,
        env={k: str(v) for k, v in (env or {}).items()},
        secrets=_secret_map(secrets),
    )


def checkout(ref: str | None = None) -> Step:
    return uses(CHECKOUT, "Checkout", **({"ref": ref} if ref else {}))


def toolchain(*tools: str) -> Step:
    return uses(TOOLCHAIN_SETUP, "Toolchain setup", tools=",".join(tools))


def cache_restore(*paths: str, key_files: Iterable[str] = ()) -> Step:
    return uses(
        CACHE_RESTORE,
        "Restore cache",
        paths=",".join(paths),
        key_files=",".join(key_files),
    )


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,
    needs: Optional[List[str]] = None,
    when: Optional[Condition] = None,
    env: Optional[Dict[str, str]] = None,
    title: str = "",
) -> Job:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(steps_list)
    steps_final.extend(steps)

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    return Job(
        name=name,
        steps=steps_final,
        run_condition=when or Always(),
        # repeated names collapse to one edge
        needs=list(dict.fromkeys(needs or [])),
        env={k: str(v) for k, v in (env or {}).items()},
        title=title,
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class JobBuilder:
    def __init__(self, name: str):
        self.name = name
        self._needs: list[str] = []
        self._steps: list[Step] = []
        self._env: dict[str, str] = {}
        self._when: Optional[Condition] = None
        self._title: str = ""

    def depends_on(self, *job_names: str):
        self._needs.extend(job_names)
        return self

    def define_step(
        self,
        name: str,
        run: str,
        cwd: str | None = None,
        env: Optional[Dict[str, str]] = None,
        secrets: Secrets = (),
    ):
        self._steps.append(sh(name, run, cwd=cwd, env=env, secrets=secrets))
        return self

    def uses(self, action: str, name: str | None = None, **params: str):
        self._steps.append(uses(action, name, **params))
        return self

    def when(self, condition: Condition):
        self._when = condition
        return self

    def with_env(self, **env):
        # force values to str for env compatibility
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def titled(self, title: str):
        self._title = title
        return self

    def build(self) -> Job:
        if not self._steps:
            raise ValueError(f"Job '{self.name}' has no steps")
        return job(
            self.name,
            steps_list=self._steps,
            needs=self._needs,
            when=self._when,
            env=self._env,
            title=self._title,
        )


def build(name: str) -> JobBuilder:
    """Convenience: build('test').define_step(...).build()"""
    return JobBuilder(name)


# ---------------------------------------------------------------------
# Workflow helper
# ---------------------------------------------------------------------

def wf(*jobs: Job, on: Optional[Condition] = None, env: Optional[Dict[str, str]] = None) -> List[Job]:
    """
    Workflow definition helper.

    `on` is the workflow-level trigger; every job's own `when` guard is
    combined with it. `env` is merged under each job's env.

        def workflow():
            return wf(
                job("lint", sh("Ruff", "ruff check .")),
                on=any_of(on_push(branches=["main"]), on_dispatch()),
            )
    """
    out: List[Job] = []
    for j in jobs:
        merged_env = {**(env or {}), **j.env}
        out.append(replace(j, run_condition=all_of(on, j.run_condition), env=merged_env))
    return out
