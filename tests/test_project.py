# =============================================================================
# APP PREVIEW PROJECT LIFECYCLE TESTS
# =============================================================================
# Tests for initialize / up / down / status against a local source tree.
# The compose engine and the Docker daemon are mocked.
# =============================================================================

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from app_preview.core.config_loader import ConfigError
from app_preview.core.project import Project, ProjectStateError
from app_preview.domain.compose import SchemaValidationError
from app_preview.domain.models import LocalSource, ProjectOptions
from app_preview.infra.shell import EngineInvocationError


def make_project(tmp_path, source_path, docker=None, app_name="shop-pr-7", root="."):
    options = ProjectOptions(app_name=app_name, source=LocalSource(path=str(source_path)), root=root)
    return Project(
        options,
        apps_dir=tmp_path / "apps",
        docker=docker or MagicMock(),
        proxy_container="app-preview-traefik",
    )


@pytest.fixture
def mock_run():
    with patch("app_preview.core.executor.run_command") as mock:
        mock.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        yield mock


class TestInitialize:
    """Test Project.initialize."""

    def test_copies_source_and_loads_config(self, tmp_path, source_tree, mock_run):
        project = make_project(tmp_path, source_tree)

        project.initialize()

        assert project.is_initialized
        assert (tmp_path / "apps" / "shop-pr-7" / "docker-compose.yml").exists()
        assert project.options.expose["web"].domain == "shop-pr-7.traefik.me"

    def test_idempotent(self, tmp_path, source_tree, mock_run):
        docker = MagicMock()
        project = make_project(tmp_path, source_tree, docker)

        project.initialize()
        project.initialize()

        assert docker.remove_network.call_count == 1

    def test_missing_config(self, tmp_path, source_tree, mock_run):
        (source_tree / "app-preview.config.py").unlink()
        project = make_project(tmp_path, source_tree)

        with pytest.raises(ConfigError):
            project.initialize()
        assert not project.is_initialized


class TestUp:
    """Test Project.up."""

    def test_requires_initialize(self, tmp_path, source_tree, mock_run):
        with pytest.raises(ProjectStateError):
            make_project(tmp_path, source_tree).up()
        mock_run.assert_not_called()

    def test_writes_artifacts_and_starts(self, tmp_path, source_tree, mock_run):
        docker = MagicMock()
        project = make_project(tmp_path, source_tree, docker)
        project.initialize()

        domains = project.up()

        temp = tmp_path / "apps" / "shop-pr-7" / ".app-preview"
        stack = yaml.safe_load((temp / "docker-compose.yml").read_text())
        assert domains == ["shop-pr-7.traefik.me"]
        assert stack["name"] == "shop-pr-7"
        assert stack["services"]["web"]["container_name"] == "shop-pr-7_web"
        assert stack["networks"]["shop-pr-7_default"] == {"external": True}
        assert (temp / "dynamic-volumes" / "default.conf").read_text() == "server { listen 80; }\n"

        docker.ensure_network.assert_called_once_with("shop-pr-7_default")
        docker.attach_container.assert_called_once_with("shop-pr-7_default", "app-preview-traefik")

        cmd = mock_run.call_args[0][0]
        assert cmd[-5:] == ["up", "--force-recreate", "--build", "-d", "--wait"]
        assert "--env-file" in cmd

    def test_env_file_layering(self, tmp_path, source_tree, mock_run):
        project = make_project(tmp_path, source_tree)
        project.initialize()
        project.up()

        env = (tmp_path / "apps" / "shop-pr-7" / ".app-preview" / ".env").read_text()
        added, original = env.split("# ---------- ORIGINAL ----------")
        assert "APP_NAME=shop-pr-7" in added
        assert "APP_NAME_DOMAIN_INFIX=shop-pr-7" in added
        assert "FROM_PROVIDER=yes" in original
        assert "spoofed" not in env
        assert "COMMIT_SHA" not in env

    def test_dotenv_fallback_without_providers(self, tmp_path, source_tree, mock_run):
        (source_tree / "app-preview.config.py").write_text("config = define_config(lambda ctx: {})\n")
        project = make_project(tmp_path, source_tree)
        project.initialize()
        project.up()

        env = (tmp_path / "apps" / "shop-pr-7" / ".app-preview" / ".env").read_text()
        assert "LOCAL_ONLY=1" in env

    def test_invalid_stack_writes_nothing(self, tmp_path, source_tree, mock_run):
        (source_tree / "docker-compose.yml").write_text("services:\n  web:\n    imagee: x\n")
        docker = MagicMock()
        project = make_project(tmp_path, source_tree, docker)
        project.initialize()

        with pytest.raises(SchemaValidationError):
            project.up()

        assert not (tmp_path / "apps" / "shop-pr-7" / ".app-preview").exists()
        docker.ensure_network.assert_not_called()
        mock_run.assert_not_called()

    def test_relative_apps_dir(self, tmp_path, source_tree, mock_run, monkeypatch):
        monkeypatch.chdir(tmp_path)
        options = ProjectOptions(app_name="shop-pr-7", source=LocalSource(path=str(source_tree)))
        project = Project(options, apps_dir=Path("apps"), docker=MagicMock())
        project.initialize()
        project.up()

        cmd = mock_run.call_args[0][0]
        cwd = Path(mock_run.call_args.kwargs["cwd"])
        stack = Path(cmd[cmd.index("-f") + 1])
        env_file = Path(cmd[cmd.index("--env-file") + 1])

        assert stack.is_absolute()
        assert env_file.is_absolute()
        assert (cwd / stack).is_file()

        written = yaml.safe_load(stack.read_text())
        source = written["services"]["web"]["volumes"][0]["source"]
        assert Path(source).is_absolute()
        assert Path(source).is_file()

    def test_engine_failure_propagates(self, tmp_path, source_tree, mock_run):
        mock_run.side_effect = EngineInvocationError("dependency failed to start", returncode=1)
        project = make_project(tmp_path, source_tree)
        project.initialize()

        with pytest.raises(EngineInvocationError):
            project.up()


class TestDownAndStatus:
    """Test Project.down and Project.status."""

    def test_down_removes_everything(self, tmp_path, source_tree, mock_run):
        docker = MagicMock()
        project = make_project(tmp_path, source_tree, docker)
        project.initialize()
        project.up()
        mock_run.reset_mock()
        docker.reset_mock()

        project.down()

        cmd = mock_run.call_args[0][0]
        assert cmd[-3:] == ["down", "--volumes", "--remove-orphans"]
        docker.remove_network.assert_called_once_with(
            "shop-pr-7_default", detach=["app-preview-traefik"]
        )
        assert not (tmp_path / "apps" / "shop-pr-7").exists()
        assert not project.is_initialized

    def test_down_on_fresh_project(self, tmp_path, source_tree, mock_run):
        make_project(tmp_path, source_tree, root=".").down()
        mock_run.assert_not_called()

    def test_fresh_project_finds_nested_artifacts(self, tmp_path, source_tree, mock_run):
        nested = tmp_path / "apps" / "shop-pr-7" / "app" / ".app-preview"
        nested.mkdir(parents=True)
        (nested / "docker-compose.yml").write_text("services: {}\n")

        project = make_project(tmp_path, source_tree)

        assert project.has_stack()
        project.down()
        assert mock_run.call_args[0][0][-3:] == ["down", "--volumes", "--remove-orphans"]

    def test_status_after_down(self, tmp_path, source_tree, mock_run):
        project = make_project(tmp_path, source_tree)
        project.initialize()
        project.up()
        project.down()
        mock_run.reset_mock()

        assert project.status() is None
        mock_run.assert_not_called()

    def test_status_before_up(self, tmp_path, source_tree, mock_run):
        project = make_project(tmp_path, source_tree)
        assert project.status() is None
        assert not project.has_stack()

    def test_status_after_up(self, tmp_path, source_tree, mock_run):
        project = make_project(tmp_path, source_tree)
        project.initialize()
        project.up()
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=0, stdout='{"Name":"shop-pr-7_web","State":"running"}\n'
        )

        statuses = project.status()

        assert [s.Name for s in statuses] == ["shop-pr-7_web"]
        assert mock_run.call_args[0][0][-3:] == ["ps", "--format", "json"]

    def test_apps_are_isolated(self, tmp_path, source_tree, mock_run):
        first = make_project(tmp_path, source_tree, app_name="shop-pr-1")
        second = make_project(tmp_path, source_tree, app_name="shop-pr-2")
        first.initialize()
        first.up()
        second.initialize()
        second.up()

        first.down()

        assert not (tmp_path / "apps" / "shop-pr-1").exists()
        assert (tmp_path / "apps" / "shop-pr-2" / ".app-preview" / "docker-compose.yml").exists()
