# =============================================================================
# APP PREVIEW CLI TESTS
# =============================================================================
# Tests for argument handling and command dispatch.
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest

from app_preview.cli import build_parser, derive_app_name, main, options_from_args
from app_preview.core.config_loader import ConfigError
from app_preview.domain.models import ContainerStatus, GitSource, LocalSource


class TestDeriveAppName:
    """Test derive_app_name."""

    def test_pull_request(self):
        assert derive_app_name("shop", branch="feature/cart", pr=7) == "shop-pr-7"

    def test_branch(self):
        assert derive_app_name("shop", branch="Feature/Cart") == "shop-branch-feature-cart"

    def test_template_only(self):
        assert derive_app_name("Shop") == "shop"


class TestOptionsFromArgs:
    """Test options_from_args."""

    def test_branch(self):
        args = build_parser().parse_args(
            ["up", "shop", "--repo", "https://github.com/acme/shop", "--branch", "main"]
        )
        options = options_from_args(args)

        assert options.app_name == "shop-branch-main"
        assert options.source == GitSource(repo_url="https://github.com/acme/shop", branch="main")

    @patch("app_preview.cli.get_pull_request_branch")
    def test_pull_request_resolves_branch(self, mock_lookup):
        mock_lookup.return_value = "feature/cart"
        args = build_parser().parse_args(
            ["up", "shop", "--repo", "https://github.com/acme/shop", "--pr", "7"]
        )

        options = options_from_args(args)

        assert options.app_name == "shop-pr-7"
        assert options.source.branch == "feature/cart"
        assert mock_lookup.call_args[0][1:] == ("https://github.com/acme/shop", 7)

    def test_local_directory(self, tmp_path):
        args = build_parser().parse_args(["up", "shop", "--dir", str(tmp_path), "--root", "app"])
        options = options_from_args(args)

        assert options.source == LocalSource(path=str(tmp_path))
        assert options.root == "app"

    def test_missing_source(self):
        args = build_parser().parse_args(["up", "shop"])
        with pytest.raises(SystemExit):
            options_from_args(args)


class TestMain:
    """Test main."""

    @patch("app_preview.cli.Project")
    def test_up(self, mock_project_cls, tmp_path):
        assert main(["up", "shop", "--dir", str(tmp_path)]) == 0

        project = mock_project_cls.return_value
        project.initialize.assert_called_once()
        project.up.assert_called_once()
        assert mock_project_cls.call_args[0][0].app_name == "shop"

    @patch("app_preview.cli.Project")
    def test_lifecycle_error_exit_code(self, mock_project_cls, tmp_path):
        mock_project_cls.return_value.initialize.side_effect = ConfigError("No app-preview.config.py")
        assert main(["up", "shop", "--dir", str(tmp_path)]) == 1

    @patch("app_preview.cli.Project")
    def test_down(self, mock_project_cls):
        assert main(["down", "shop-pr-7"]) == 0

        mock_project_cls.return_value.down.assert_called_once()
        assert mock_project_cls.call_args[0][0].app_name == "shop-pr-7"

    @patch("app_preview.cli.Project")
    def test_status_table(self, mock_project_cls):
        mock_project_cls.return_value.status.return_value = [
            ContainerStatus(Name="shop-pr-7_web", Service="web", State="running")
        ]
        assert main(["status", "shop-pr-7"]) == 0

    @patch("app_preview.cli.Project")
    def test_status_not_deployed(self, mock_project_cls):
        project = mock_project_cls.return_value
        project.status.return_value = None
        project.has_stack.return_value = False

        assert main(["status", "shop-pr-7"]) == 0
        project.has_stack.assert_called_once()

    def test_invalid_app_name(self):
        assert main(["down", "Not_A_Label"]) == 1

    @patch("app_preview.cli.serve")
    def test_serve(self, mock_serve):
        assert main(["serve", "--port", "9000"]) == 0
        mock_serve.assert_called_once_with("0.0.0.0", 9000)
