"""Shared fixtures for factlint tests."""

import sys
from pathlib import Path

import pytest
import yaml

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


@pytest.fixture(autouse=True)
def no_edit_log_server(monkeypatch):
    """Never talk to a real edit-log service from tests."""
    monkeypatch.delenv("FACTLINT_SERVER_URL", raising=False)
    monkeypatch.delenv("FACTLINT_SERVER_API_KEY", raising=False)
    monkeypatch.delenv("FACTLINT_CONFIG", raising=False)


@pytest.fixture
def content_dir(tmp_path):
    path = tmp_path / "content"
    path.mkdir()
    return path


@pytest.fixture
def facts_dir(tmp_path):
    path = tmp_path / "facts"
    path.mkdir()
    return path


def write_page(root: Path, relative: str, text: str) -> Path:
    """Write a content page under root and return its path."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def write_facts(root: Path, entity: str, facts: dict) -> Path:
    """Write a per-entity fact file."""
    path = root / f"{entity}.yaml"
    path.write_text(yaml.safe_dump({"entity": entity, "facts": facts}), encoding="utf-8")
    return path
