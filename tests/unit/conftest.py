"""Shared test fixtures."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from tests.unit.fakes import FakeFileSystem


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    return FakeFileSystem()


@pytest.fixture
def write_project(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory that writes a project document and returns its path.

    Accepts either a dict (serialized with indent=2) or raw text.
    """

    def _write(document: dict[str, Any] | str, name: str = "demo.ymmp") -> Path:
        path = tmp_path / name
        text = document if isinstance(document, str) else json.dumps(document, indent=2)
        path.write_bytes(text.encode("utf-8"))
        return path

    return _write
