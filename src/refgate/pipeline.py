# pipeline.py
# The release pipeline: lint/format/docs checks, build + test, and a
# crate publish that only runs for version tags.
from __future__ import annotations

from typing import List

from .conditions import any_of, on_dispatch, on_pull_request, on_push, ref_matches
from .dsl import cache_restore, checkout, job, sh, toolchain, wf
from .model import Job

DEFAULT_BRANCH = "main"
RELEASE_TAG_PATTERN = "refs/tags/v*"
PUBLISH_TOKEN = "CARGO_REGISTRY_TOKEN"
# store name the publish token is read from
PUBLISH_SECRET = "CRATES_IO_TOKEN"


def release_triggers(branch: str = DEFAULT_BRANCH):
    return any_of(
        on_push(branches=[branch], tags=["*"]),
        on_pull_request(branches=[branch], types=["opened", "synchronize"]),
        on_dispatch(),
    )


def _setup(*tools: str):
    return [
        checkout(),
        toolchain("cargo", *tools),
        cache_restore("target", key_files=["Cargo.lock", "Cargo.toml"]),
    ]


def release_pipeline(crate: str = "dapts", branch: str = DEFAULT_BRANCH) -> List[Job]:
    return wf(
        job(
            "checks",
            *_setup("rustfmt", "cargo-clippy"),
            sh("Clippy", "cargo clippy --workspace --all-targets"),
            sh("Format check", "cargo fmt --check --all"),
            sh("Docs", "cargo doc --workspace --no-deps"),
            title="Check clippy, formatting, and documentation",
        ),
        job(
            "build",
            *_setup(),
            sh("Build", "cargo build --workspace"),
            sh("Test", "cargo test --workspace"),
            title="Build and test",
        ),
        job(
            "publish",
            *_setup(),
            sh(
                "Publish to Crates.io",
                f"cargo publish --package {crate}",
                secrets={PUBLISH_TOKEN: PUBLISH_SECRET},
            ),
            needs=["build"],
            when=ref_matches(RELEASE_TAG_PATTERN),
            title="Publish",
        ),
        on=release_triggers(branch),
        env={"CARGO_TERM_COLOR": "always"},
    )


def workflow() -> List[Job]:
    return release_pipeline()
