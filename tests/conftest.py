"""Shared fixtures for vum tests."""

import json
import threading
import pytest

from vum import ComposeVersionUpdater

# ---------------------------------------------------------------------------
# Tag lists modeled on real Docker Hub repositories
# ---------------------------------------------------------------------------

TAG_LISTS = {
    "library/nginx": [
        "latest", "stable", "mainline", "1.25.3", "1.25.2", "1.24.0",
        "1.25.3-alpine", "1.24.0-alpine", "1.25", "1.24", "1", "alpine",
    ],
    "library/mariadb": [
        "latest", "10.5.13-focal", "10.5.22-focal", "10.5.22-jammy",
        "10.5.13-jammy", "10.6.16-jammy", "11.2.2-jammy", "11.2", "10.5",
    ],
    "library/postgres": [
        "latest", "16", "15", "14", "16-alpine", "15-alpine", "16.1", "15.5",
    ],
    "traefik/traefik": [
        "latest", "v2.9.6", "v2.9.10", "v2.10.7", "v2.11.0", "v3.0.0", "v2.10",
        "v3.0", "v2", "v3", "2.10.7",
    ],
    "linuxserver/sonarr": [
        "latest", "develop", "4.0.16-ls299", "4.0.15-ls294", "3.0.10-ls200",
    ],
}


class FakeRegistry:
    """In-memory tag lookup recording every requested name."""

    def __init__(self, tags=None, errors=None):
        self.tags = TAG_LISTS if tags is None else tags
        self.errors = errors or {}
        self.calls = []
        self._lock = threading.Lock()

    def get_tag_names(self, image_name):
        with self._lock:
            self.calls.append(image_name)
        if image_name in self.errors:
            raise self.errors[image_name]
        return list(self.tags.get(image_name, []))


COMPOSE_TEXT = """\
version: '3'
services:
  web:
    # frontend proxy
    image: nginx:1.24.0
    ports:
      - "80:80"
  db:
    # vum:minor vum:warnMinor
    image: mariadb:10.5.13-jammy
  cache:
    image: postgres:15  # vum:ignore
  proxy:
    image: "traefik/traefik:v2.9.6"  # vum:patch
  builder:
    build: .
"""


@pytest.fixture
def fake_registry():
    return FakeRegistry()


@pytest.fixture
def compose_file(tmp_path):
    path = tmp_path / "docker-compose.yml"
    path.write_text(COMPOSE_TEXT)
    return path


@pytest.fixture
def updater(compose_file, fake_registry):
    """ComposeVersionUpdater over the sample compose file and fake registry."""
    return ComposeVersionUpdater(str(compose_file), registry=fake_registry)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "registry": {"url": "https://registry.example.com", "max_tags": 50},
        "denylist": ["stable"],
        "max_workers": 2,
    }))
    return path
