"""Shared test fixtures for nixhelp tests."""
import json
from pathlib import Path

import pytest

from nixhelp.core.config import NixhelpConfig
from nixhelp.templates.manager import TemplateManager
from nixhelp.templates.metadata import MetadataStore
from nixhelp.templates.registry import TemplateRegistry


def template_document(name, category="custom", **overrides):
    """Valid template.json content for tests."""
    document = {
        "schemaVersion": "1.0",
        "name": name,
        "version": "1.0.0",
        "description": f"{name} template",
        "category": category,
        "type": "raw-file-tree",
        "dependencies": [],
        "variables": {},
        "compatibility": [],
    }
    document.update(overrides)
    return document


def write_template(directory, document, files=None):
    """Create a template directory with metadata and content files."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "template.json").write_text(json.dumps(document, indent=4))
    for relative, content in (files or {}).items():
        path = directory / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return directory


@pytest.fixture
def config(tmp_path):
    """Config with every directory under tmp_path."""
    cfg = NixhelpConfig(
        repo_path=tmp_path / "repo",
        config_dir=tmp_path / "config",
        cache_dir=tmp_path / "cache",
        data_dir=tmp_path / "data",
        template_dir=tmp_path / "templates",
        backup_dir=tmp_path / "config" / "backups",
        log_dir=tmp_path / "config" / "logs",
        lock_timeout=0,
    )
    cfg.repo_path.mkdir()
    return cfg


@pytest.fixture
def store():
    return MetadataStore()


@pytest.fixture
def registry(config, store):
    return TemplateRegistry(config, store)


@pytest.fixture
def manager(config):
    return TemplateManager(config)


@pytest.fixture
def make_template(config):
    """Create an installed template: make_template(category, name, files=None, **fields)."""

    def _make(category, name, files=None, **fields):
        fields.setdefault("category", category)
        document = template_document(fields.pop("metadata_name", name), **fields)
        return write_template(config.template_dir / category / name, document, files)

    return _make
