"""Pytest configuration and fixtures for cfpush tests.

Provides sample application artifacts (exploded directory and zip) and
isolates every test from CFPUSH_* variables set in the outer environment.
"""

from __future__ import annotations

import os
import zipfile
from pathlib import Path

import pytest

from tests.fixtures.artifacts import APP_JAR, UTIL_JAR, WEB_XML


@pytest.fixture(autouse=True)
def clear_cfpush_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove CFPUSH_* variables so defaults apply unless a test sets them."""
    for key in list(os.environ):
        if key.startswith("CFPUSH_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    """Exploded application directory.

    Layout:
        app.jar              (1000 bytes)
        lib/util.jar         (200 bytes)
        WEB-INF/web.xml      (text)
    """
    root = tmp_path / "app"
    (root / "lib").mkdir(parents=True)
    (root / "WEB-INF").mkdir()
    (root / "app.jar").write_bytes(APP_JAR)
    (root / "lib" / "util.jar").write_bytes(UTIL_JAR)
    (root / "WEB-INF" / "web.xml").write_bytes(WEB_XML)
    return root


@pytest.fixture
def app_zip(tmp_path: Path) -> Path:
    """Zip artifact with the same files as app_dir and explicit directory members."""
    path = tmp_path / "app.war"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("app.jar", APP_JAR, compress_type=zipfile.ZIP_STORED)
        zf.writestr("lib/", b"")
        zf.writestr("lib/util.jar", UTIL_JAR, compress_type=zipfile.ZIP_STORED)
        zf.writestr("WEB-INF/", b"")
        zf.writestr("WEB-INF/web.xml", WEB_XML, compress_type=zipfile.ZIP_DEFLATED)
    return path
