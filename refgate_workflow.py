# refgate_workflow.py
# Workflow for refgate itself: lint, tests, and a release build on version tags.
from __future__ import annotations

from refgate import any_of, job, on_dispatch, on_pull_request, on_push, ref_matches, sh, wf
from refgate.dsl import checkout, toolchain


def workflow():
    return wf(
        # Lint job - runs ruff on the codebase
        job(
            "lint",
            checkout(),
            toolchain("ruff"),
            sh("Ruff check", "ruff check src tests"),
            sh("Ruff format check", "ruff format --check src tests"),
        ),

        # Test job - runs pytest on the codebase
        job(
            "test",
            checkout(),
            sh("Install package", "python -m pip install -e '.[test]'"),
            sh("Run pytest", "pytest -q"),
        ),

        # Release job - builds sdist/wheel for version tags once tests pass
        job(
            "package",
            checkout(),
            sh("Build dists", "python -m pip wheel --no-deps -w dist ."),
            needs=["lint", "test"],
            when=ref_matches("refs/tags/v*"),
        ),
        on=any_of(
            on_push(branches=["main"], tags=["v*"]),
            on_pull_request(branches=["main"]),
            on_dispatch(),
        ),
    )
