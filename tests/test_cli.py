import json

import pytest
from click.testing import CliRunner

from refgate.cli import cli


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.delenv("REFGATE_WORKFLOW", raising=False)
    return CliRunner()


def test_plan_tag_push_json(runner):
    result = runner.invoke(cli, ["plan", "--event", "push", "--tag", "v1.2.3", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["event"]["ref"] == "refs/tags/v1.2.3"
    assert [j["scheduled"] for j in data["jobs"]] == [True, True, True]


def test_plan_dispatch_human_output(runner):
    result = runner.invoke(cli, ["plan", "--event", "workflow_dispatch"])
    assert result.exit_code == 0, result.output
    assert "checks: scheduled (manual dispatch)" in result.output
    assert "publish: skipped (tag condition unmet)" in result.output


def test_plan_with_failed_build_outcome(runner):
    result = runner.invoke(
        cli, ["plan", "--event", "push", "--tag", "v1.2.3", "--outcome", "build=failed"]
    )
    assert result.exit_code == 0, result.output
    assert "publish: skipped (dependency 'build' failed)" in result.output


def test_plan_bad_outcome(runner):
    result = runner.invoke(cli, ["plan", "--event", "workflow_dispatch", "--outcome", "build=maybe"])
    assert result.exit_code == 2


def test_plan_from_env(runner, monkeypatch):
    monkeypatch.setenv("GITHUB_EVENT_NAME", "push")
    monkeypatch.setenv("GITHUB_REF", "refs/heads/main")
    result = runner.invoke(cli, ["plan", "--from-env", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [j["job"] for j in data["jobs"] if j["scheduled"]] == ["checks", "build"]


def test_plan_invalid_event_exits_2(runner):
    result = runner.invoke(cli, ["plan", "--event", "push"])
    assert result.exit_code == 2


def test_plan_cyclic_workflow_exits_2(runner, tmp_path):
    wf = tmp_path / "cyclic_workflow.py"
    wf.write_text(
        "from refgate import job, sh\n"
        "JOBS = [job('a', sh('a', 'true'), needs=['b']), job('b', sh('b', 'true'), needs=['a'])]\n"
    )
    result = runner.invoke(cli, ["plan", "--event", "workflow_dispatch", "--workflow", str(wf)])
    assert result.exit_code == 2


def test_run_dry_run(runner):
    result = runner.invoke(cli, ["run", "--event", "pull_request", "--base", "dev", "--action", "opened", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "no matching trigger" in result.output


def test_run_custom_workflow(runner, tmp_path):
    wf = tmp_path / "shell_workflow.py"
    wf.write_text(
        "from refgate import job, sh, wf, on_dispatch\n"
        "def workflow():\n"
        "    return wf(\n"
        "        job('good', sh('ok', 'true')),\n"
        "        job('bad', sh('boom', 'exit 4')),\n"
        "        job('after', sh('never', 'true'), needs=['bad']),\n"
        "        on=on_dispatch(),\n"
        "    )\n"
    )
    result = runner.invoke(
        cli,
        ["run", "--event", "workflow_dispatch", "--workflow", str(wf), "--cache-dir", str(tmp_path / "c")],
    )
    assert result.exit_code == 1, result.output
    assert "good: SUCCEEDED" in result.output
    assert "bad: FAILED" in result.output
    assert "after: SKIPPED (dependency 'bad' failed)" in result.output


def test_jobs_lists_graph(runner):
    result = runner.invoke(cli, ["jobs"])
    assert result.exit_code == 0, result.output
    assert "publish  needs: build" in result.output
    assert "secrets: CARGO_REGISTRY_TOKEN" in result.output
