"""Shared pytest fixtures for Z-Dep-Analyzer tests."""

from __future__ import annotations

import pytest

from z_dep_analyzer.testing import FakeProcessRunner


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def runner():
    return FakeProcessRunner()


@pytest.fixture
def analysis_root(tmp_path):
    root = tmp_path.resolve() / "repo"
    root.mkdir()
    return root
