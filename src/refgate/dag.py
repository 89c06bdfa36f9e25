# dag.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

from .model import Job


class WorkflowConfigError(ValueError):
    """Invalid job graph. Raised at load time, before any event is evaluated."""


@dataclass(frozen=True)
class JobGraph:
    """
    A validated job graph.

    `order` is a stable topological order: roots first, and among jobs that
    become ready together the one declared first comes first.
    """
    jobs: Tuple[Job, ...]
    order: Tuple[str, ...]
    levels: Tuple[Tuple[str, ...], ...]
    adj: Dict[str, Set[str]]  # dep -> dependents

    def __iter__(self):
        by_name = self.by_name
        return iter(by_name[n] for n in self.order)

    def __len__(self) -> int:
        return len(self.jobs)

    @property
    def by_name(self) -> Dict[str, Job]:
        return {j.name: j for j in self.jobs}

    def job(self, name: str) -> Job:
        return self.by_name[name]

    def dependents(self, name: str) -> List[str]:
        return [n for n in self.order if n in self.adj.get(name, set())]

    def transitive_dependents(self, name: str) -> List[str]:
        seen: Set[str] = set()
        q = deque([name])
        while q:
            node = q.popleft()
            for child in self.adj.get(node, set()):
                if child not in seen:
                    seen.add(child)
                    q.append(child)
        return [n for n in self.order if n in seen]


def _index_jobs(jobs: List[Job]) -> Dict[str, Job]:
    names = [j.name for j in jobs]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise WorkflowConfigError(f"Duplicate job names found: {dupes}")
    return {j.name: j for j in jobs}


def _edges(jobs: List[Job], by_name: Dict[str, Job]) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    adj: Dict[str, Set[str]] = {n: set() for n in by_name}
    indeg: Dict[str, int] = {n: 0 for n in by_name}

    for job in jobs:
        for dep in job.needs or []:
            if dep not in by_name:
                raise WorkflowConfigError(
                    f"Job '{job.name}' needs missing job '{dep}'. "
                    f"Known jobs: {sorted(by_name)}"
                )
            if dep == job.name:
                raise WorkflowConfigError(f"Job '{job.name}' depends on itself")
            # Edge dep -> job.name (dep must run before job)
            if job.name not in adj[dep]:
                adj[dep].add(job.name)
                indeg[job.name] += 1

    return adj, indeg


def _topo_levels(
    adj: Dict[str, Set[str]],
    indeg: Dict[str, int],
    position: Dict[str, int],
) -> List[List[str]]:
    """
    Kahn's algorithm, grouped into levels. Each level can run in parallel.
    Ties are broken by declaration position so the order is stable.
    """
    indeg = dict(indeg)  # copy (we mutate it)
    level = sorted((n for n, d in indeg.items() if d == 0), key=position.__getitem__)

    levels: List[List[str]] = []
    processed = 0

    while level:
        levels.append(level)
        processed += len(level)
        nxt: List[str] = []
        for node in level:
            for child in adj.get(node, set()):
                indeg[child] -= 1
                if indeg[child] == 0:
                    nxt.append(child)
        level = sorted(nxt, key=position.__getitem__)

    if processed != len(indeg):
        remaining = sorted(n for n, d in indeg.items() if d > 0)
        raise WorkflowConfigError(f"Job graph has a cycle. Stuck jobs: {remaining}")

    return levels


def build_graph(jobs: Iterable[Job]) -> JobGraph:
    """
    Validate jobs and build the dependency graph.

    Raises WorkflowConfigError on duplicate names, unknown dependencies or
    cycles.
    """
    jobs = list(jobs)
    by_name = _index_jobs(jobs)
    adj, indeg = _edges(jobs, by_name)
    position = {j.name: i for i, j in enumerate(jobs)}
    levels = _topo_levels(adj, indeg, position)

    return JobGraph(
        jobs=tuple(jobs),
        order=tuple(n for lvl in levels for n in lvl),
        levels=tuple(tuple(lvl) for lvl in levels),
        adj=adj,
    )
