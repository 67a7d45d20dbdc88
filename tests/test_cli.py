import json

from conftest import StubOracle, StubScanner
from typer.testing import CliRunner

from editlab import cli
from editlab.config_loader import EditLabConfig
from editlab.controller import Controller
from editlab.models import ProjectContext

runner = CliRunner()


def test_version():
    result = runner.invoke(cli.app, ["--version"])

    assert result.exit_code == 0
    assert "EDITLAB v0.3.0" in result.output


def test_init_bootstraps_state_dir(project):
    result = runner.invoke(cli.app, ["init", str(project)])

    assert result.exit_code == 0
    assert (project / ".editlab" / "backups").is_dir()
    assert (project / ".editlab" / "config.yaml").exists()
    assert ".editlab/backups/" in (project / ".gitignore").read_text()


def test_init_appends_to_existing_gitignore_once(project):
    (project / ".gitignore").write_text("dist/\n")
    runner.invoke(cli.app, ["init", str(project)])
    runner.invoke(cli.app, ["init", str(project)])

    text = (project / ".gitignore").read_text()
    assert text.startswith("dist/\n")
    assert text.count(".editlab/logs/") == 1


def test_status_lists_keys_and_routing(project):
    result = runner.invoke(cli.app, ["status", "--repo", str(project)])

    assert result.exit_code == 0
    assert "GROQ_API_KEY" in result.output
    assert "advisory" in result.output


def _stub_builder(oracle):
    def build(repo, auto_approve=False, stream=False):
        return Controller(
            repo_path=repo,
            config=EditLabConfig(),
            oracle=oracle,
            scanner=StubScanner(),
            auto_approve=auto_approve,
            context_provider=lambda task: ProjectContext(),
            console=cli.console,
            audit=False,
        )

    return build


def test_run_applies_with_yes(project, monkeypatch):
    plan = json.dumps([{"file": "hello.txt", "action": "create", "explanation": "greet"}])
    monkeypatch.setattr(cli, "_build_controller", _stub_builder(StubOracle(plan_output=plan)))

    result = runner.invoke(cli.app, ["run", "say hello", "--repo", str(project), "--yes"])

    assert result.exit_code == 0
    assert (project / "hello.txt").read_text() == "content for hello.txt\n"


def test_run_exits_nonzero_on_bad_plan(project, monkeypatch):
    monkeypatch.setattr(cli, "_build_controller", _stub_builder(StubOracle(plan_output="no plan")))

    result = runner.invoke(cli.app, ["run", "say hello", "--repo", str(project), "--yes"])

    assert result.exit_code == 1
    assert "Failed to build a plan" in result.output


def test_interactive_session_applies_then_undoes(project, monkeypatch):
    plan = json.dumps([{"file": "note.txt", "action": "create"}])
    monkeypatch.setattr(cli, "_build_controller", _stub_builder(StubOracle(plan_output=plan)))
    # Rich's Confirm reads the apply answer from stdin too.
    session = "add a note\ny\nhistory\nundo\nexit\n"

    result = runner.invoke(cli.app, ["interactive", "--repo", str(project)], input=session)

    assert result.exit_code == 0
    assert "Change History" in result.output
    assert not (project / "note.txt").exists()
