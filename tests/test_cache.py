import io
import tarfile

import pytest

from refgate.cache import CacheStore, compute_cache_key
from refgate.dag import build_graph
from refgate.dsl import cache_restore, job, sh
from refgate.evaluator import evaluate
from refgate.model import Event, JobStatus
from refgate.runner import execute


def test_cache_key_tracks_key_files(tmp_path):
    (tmp_path / "Cargo.lock").write_text("a")
    k1, _ = compute_cache_key("build", ["target"], ["Cargo.lock"], repo_root=tmp_path)
    k2, _ = compute_cache_key("build", ["target"], ["Cargo.lock"], repo_root=tmp_path)
    (tmp_path / "Cargo.lock").write_text("b")
    k3, _ = compute_cache_key("build", ["target"], ["Cargo.lock"], repo_root=tmp_path)
    assert k1 == k2
    assert k1 != k3


def test_save_and_restore(tmp_path):
    repo = tmp_path / "repo"
    (repo / "target").mkdir(parents=True)
    (repo / "target" / "artifact.bin").write_text("built")
    store = CacheStore(tmp_path / "cache")
    key, manifest = compute_cache_key("build", ["target"], [], repo_root=repo)

    assert not store.restore("build", key, repo_root=repo).hit
    store.save("build", key, manifest, ["target"], repo_root=repo)

    (repo / "target" / "artifact.bin").unlink()
    hit = store.restore("build", key, repo_root=repo)
    assert hit.hit
    assert (repo / "target" / "artifact.bin").read_text() == "built"


def test_restore_refuses_members_outside_repo(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    store = CacheStore(tmp_path / "cache")
    key = "k"
    data = b"owned"
    with tarfile.open(str(store.artifact_path("build", key)), mode="w:gz") as tar:
        info = tarfile.TarInfo("../escaped.txt")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))
    store.manifest_path("build", key).write_text("{}")

    with pytest.raises(tarfile.FilterError):
        store.restore("build", key, repo_root=repo)
    assert not (tmp_path / "escaped.txt").exists()

def test_cache_restore_step_saves_after_success(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "lock").write_text("v1")
    graph = build_graph([
        job(
            "build",
            cache_restore("out", key_files=["lock"]),
            sh("make", "mkdir -p out && echo data > out/file"),
        )
    ])
    run = evaluate(Event.dispatch(), graph)
    cache_root = tmp_path / "cache"

    first = execute(run, graph, repo_root=repo, cache_root=cache_root)
    assert first["build"] is JobStatus.SUCCEEDED
    assert list((cache_root / "build").glob("*.tar.gz"))

    key, _ = compute_cache_key("build", ["out"], ["lock"], repo_root=repo)
    assert CacheStore(cache_root).restore("build", key, repo_root=repo).hit


def test_prune_keeps_newest(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    store = CacheStore(tmp_path / "cache")
    for i in range(4):
        (repo / "f").write_text(str(i))
        key, manifest = compute_cache_key("j", ["f"], ["f"], repo_root=repo)
        store.save("j", key, manifest, ["f"], repo_root=repo)
    store.prune("j", keep=2)
    assert len(list((tmp_path / "cache" / "j").glob("*.tar.gz"))) == 2
