# cache.py
from __future__ import annotations

import hashlib
import io
import json
import tarfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

# ---------------------------------------------------------------------
# Core idea
# ---------------------------------------------------------------------
# Step-level caching for the `cache-restore` action:
#   cache_key = hash(job name, cached paths, contents of the key files)
#
# Cache artifact:
#   a tar.gz of the cached paths plus a manifest.json for explainability.
#
#   root/
#     <job_name>/
#       <key>.tar.gz
#       <key>.manifest.json
# ---------------------------------------------------------------------


DEFAULT_CACHE_DIR = ".refgate/cache"
DEFAULT_CACHE_EXCLUDES = [
    ".git/**",
    ".refgate/**",
    "**/.DS_Store",
]


@dataclass(frozen=True)
class CacheHit:
    hit: bool
    key: str
    reason: str  # human readable
    manifest: Dict


def _sha256_str(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _json_dumps_stable(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _relpath(p: Path, root: Path) -> str:
    return str(p.resolve().relative_to(root.resolve())).replace("\\", "/")


def _iter_files_under(root: Path) -> Iterable[Path]:
    # deterministic traversal
    for p in sorted(root.rglob("*")):
        if p.is_file():
            yield p


def _excluded(rel: str, globs: List[str]) -> bool:
    rel_path = Path(rel)
    return any(rel_path.match(g) for g in globs)


def _hash_file_contents(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def compute_cache_key(
    job_name: str,
    paths: List[str],
    key_files: List[str],
    *,
    repo_root: str | Path = ".",
) -> Tuple[str, Dict]:
    """Returns (cache_key, manifest) for a cache-restore step."""
    root = Path(repo_root).resolve()

    fingerprints: List[Tuple[str, str]] = []
    missing: List[str] = []
    for pat in key_files:
        matches = sorted(root.glob(pat)) if pat else []
        if not matches:
            missing.append(pat)
        for m in matches:
            if m.is_file():
                fingerprints.append((_relpath(m, root), _hash_file_contents(m)))

    payload = {
        "v": 1,  # bump this if you change hashing format
        "job": job_name,
        "paths": sorted(paths),
        "key_files": sorted(fingerprints),
        "missing": sorted(missing),
    }
    key = _sha256_str(_json_dumps_stable(payload))
    return key, {"key": key, "payload": payload, "generated_at_unix": int(time.time())}


class CacheStore:
    """File-based cache store, one directory per job."""

    def __init__(self, root: str | Path = DEFAULT_CACHE_DIR):
        self.root = Path(root).resolve()

    def _job_dir(self, job_name: str) -> Path:
        d = self.root / job_name
        d.mkdir(parents=True, exist_ok=True)
        return d

    def artifact_path(self, job_name: str, key: str) -> Path:
        return self._job_dir(job_name) / f"{key}.tar.gz"

    def manifest_path(self, job_name: str, key: str) -> Path:
        return self._job_dir(job_name) / f"{key}.manifest.json"

    def restore(self, job_name: str, key: str, *, repo_root: str | Path = ".") -> CacheHit:
        """Extract the artifact for `key` into repo_root, if there is one."""
        art = self.artifact_path(job_name, key)
        man = self.manifest_path(job_name, key)
        if not art.exists() or not man.exists():
            return CacheHit(hit=False, key=key, reason="cache miss", manifest={})

        root = Path(repo_root).resolve()
        with tarfile.open(str(art), mode="r:gz") as tar:
            tar.extractall(path=str(root), filter="data")

        stored = json.loads(man.read_text(encoding="utf-8"))
        return CacheHit(hit=True, key=key, reason="cache hit: restored artifact", manifest=stored)

    def save(
        self,
        job_name: str,
        key: str,
        manifest: Dict,
        paths: List[str],
        *,
        repo_root: str | Path = ".",
    ) -> Path:
        """Archive `paths` under `key`. Written to a temp file, then renamed."""
        root = Path(repo_root).resolve()
        art = self.artifact_path(job_name, key)
        man = self.manifest_path(job_name, key)

        tmp = art.with_suffix(".tmp")
        try:
            with tarfile.open(str(tmp), mode="w:gz") as tar:
                for entry in paths:
                    src = (root / entry).resolve()
                    if not src.exists():
                        continue
                    files = [src] if src.is_file() else list(_iter_files_under(src))
                    for f in files:
                        rel = _relpath(f, root)
                        if _excluded(rel, DEFAULT_CACHE_EXCLUDES):
                            continue
                        tar.add(str(f), arcname=rel, recursive=False)

                data = json.dumps(manifest, sort_keys=True, indent=2).encode("utf-8")
                info = tarfile.TarInfo(name=f".refgate_cache_manifest/{job_name}/{key}.manifest.json")
                info.size = len(data)
                info.mtime = int(time.time())
                tar.addfile(info, fileobj=io.BytesIO(data))

            tmp.replace(art)
            man.write_text(json.dumps(manifest, sort_keys=True, indent=2), encoding="utf-8")
        finally:
            tmp.unlink(missing_ok=True)
        return art

    def prune(self, job_name: str, keep: int = 3) -> None:
        """Keep only the newest N artifacts for a job (by mtime)."""
        d = self._job_dir(job_name)
        tars = sorted(d.glob("*.tar.gz"), key=lambda p: p.stat().st_mtime, reverse=True)
        for p in tars[keep:]:
            key = p.name[: -len(".tar.gz")]
            p.unlink(missing_ok=True)
            (d / f"{key}.manifest.json").unlink(missing_ok=True)
