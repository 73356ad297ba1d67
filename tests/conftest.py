from __future__ import annotations

import os
from pathlib import Path

import pytest

from sessionlens.pattern_detection.thresholds import reload_thresholds


@pytest.fixture(autouse=True)
def _isolated_tuneables(tmp_path, monkeypatch):
    """Keep the user's runtime tuneables and SESSIONLENS_* env out of tests."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    for var in list(os.environ):
        if var.startswith("SESSIONLENS_"):
            monkeypatch.delenv(var, raising=False)
    reload_thresholds()
    yield
    reload_thresholds()
