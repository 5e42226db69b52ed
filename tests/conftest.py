"""Shared fixtures for modsplit tests: throwaway Cargo projects on disk."""

import os
import textwrap
from pathlib import Path
from typing import Dict

import pytest

from modsplit.config import ModularityConfig, RuleToggles, ThresholdConfig


def write_tree(root: Path, files: Dict[str, str]) -> Path:
    """Write ``files`` (relative path -> dedented content) below ``root``."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return root


def tree_state(root: Path) -> Dict[str, bytes]:
    """Every file and directory below ``root`` except the state directory."""
    state = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root)
        if rel.parts[0] == ".modsplit":
            continue
        state[rel.as_posix()] = path.read_bytes() if path.is_file() else b"<dir>"
    return state


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep the user's global config and MODSPLIT_* variables out of tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("MODSPLIT_"):
            monkeypatch.delenv(key)


@pytest.fixture
def make_project(tmp_path):
    """Factory writing a Cargo project into a fresh directory."""
    counter = {"n": 0}

    def make(files: Dict[str, str]) -> Path:
        counter["n"] += 1
        root = tmp_path / f"ws{counter['n']}"
        root.mkdir()
        return write_tree(root, files)

    return make


@pytest.fixture
def make_config():
    """Factory for configs with custom thresholds and rule toggles."""

    def make(rules=None, **thresholds) -> ModularityConfig:
        return ModularityConfig(
            thresholds=ThresholdConfig(**thresholds),
            rules=rules or RuleToggles(),
            workers=2,
        )

    return make


@pytest.fixture
def snapshot():
    return tree_state


PACKAGE = """
[package]
name = "{name}"
version = "0.1.0"
edition = "2021"
"""


def package_manifest(name: str, dependencies: Dict[str, str] = None) -> str:
    text = PACKAGE.format(name=name)
    if dependencies:
        text += "\n[dependencies]\n"
        for dep, path in dependencies.items():
            text += f'{dep} = {{ path = "{path}" }}\n'
    return text


@pytest.fixture
def manifest():
    return package_manifest
