"""
Pytest configuration and fixtures for App Preview tests.
"""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add the repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables
os.environ.setdefault("GITHUB_TOKEN", "test-github-token")
os.environ.setdefault("APP_PREVIEW_PROXY_CONTAINER", "app-preview-traefik")
os.environ.setdefault("APP_PREVIEW_PROXY_ENTRYPOINT", "web")


SAMPLE_STACK = """\
services:
  web:
    image: nginx:alpine
    env_file: web.env
    volumes:
      - type: bind
        target: /etc/nginx/conf.d/default.conf
        content: |
          server { listen 80; }
  db:
    image: postgres:16
    container_name: database
    networks:
      internal:
        aliases: [pg]
    volumes:
      - pgdata:/var/lib/postgresql/data
networks:
  internal:
volumes:
  pgdata:
"""

SAMPLE_CONFIG = """\
config = define_config(lambda ctx: {
    "expose": {
        "web": {
            "domain": f"{ctx.app_name_domain_infix}.traefik.me",
            "basicAuth": "admin:$2y$05$hash",
        },
    },
    "env_providers": [ctx.env_providers.static({"FROM_PROVIDER": "yes", "APP_NAME": "spoofed"})],
})
"""


@pytest.fixture
def mock_network_manager():
    """Stand-in for DockerProvider network operations."""
    manager = MagicMock()
    manager.ensure_network.return_value = MagicMock()
    manager.attach_container.return_value = None
    return manager


@pytest.fixture
def mock_docker_client():
    """Mock Docker SDK client for testing."""
    client = MagicMock()
    client.ping.return_value = True
    client.networks.list.return_value = []
    return client


@pytest.fixture
def source_tree(tmp_path):
    """A local project tree with a stack file and a config entry point."""
    tree = tmp_path / "source"
    tree.mkdir()
    (tree / "docker-compose.yml").write_text(SAMPLE_STACK)
    (tree / "app-preview.config.py").write_text(SAMPLE_CONFIG)
    (tree / ".env").write_text("LOCAL_ONLY=1\n")
    return tree
