"""Shared fixtures for curlcraft tests."""

import os

import pytest
import yaml
from click.testing import CliRunner

from curlcraft import loader


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a temporary project directory and cd into it."""
    original = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(original)


@pytest.fixture(autouse=True)
def global_curlcraft_dir(tmp_path, monkeypatch):
    """Override the global ~/.curlcraft directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".curlcraft"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(loader, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(loader, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


def write_yaml(path, data):
    """Helper to write a YAML document, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path
