from __future__ import annotations

import os
import stat
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from tcmg_app.services.keepalive import KeepAlive
from tcmg_app.services.server_manager import ProcessSupervisor
from tcmg_app.state import StatusView

from tests.utils.fakes import FakeBackend, FakeInhibitor

pytest_plugins = ["nicegui.testing.user_plugin"]

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def inhibitor() -> FakeInhibitor:
    return FakeInhibitor()


@pytest.fixture
def keepalive(inhibitor: FakeInhibitor) -> KeepAlive:
    return KeepAlive(inhibitor=inhibitor, name="tcmg:test")


@pytest.fixture
def supervisor(backend: FakeBackend, keepalive: KeepAlive) -> Iterator[ProcessSupervisor]:
    sup = ProcessSupervisor(backend, keepalive=keepalive)
    try:
        yield sup
    finally:
        sup.close()


@pytest.fixture
def view() -> StatusView:
    """A private StatusView so tests never touch the module singleton."""
    return StatusView()


@pytest.fixture
def fake_server_bin(tmp_path: Path) -> Path:
    """
    A stand-in tcmg executable: echoes its argv, prints a few log lines, then
    idles until terminated.
    """
    script = tmp_path / "tcmg"
    script.write_text(
        textwrap.dedent(
            """\
            #!/bin/sh
            echo "tcmg fake server"
            echo "args: $*"
            echo "ready"
            exec sleep 30
            """
        ),
        encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    cfg = tmp_path / "cfg"
    cfg.mkdir()
    (cfg / "config.cfg").write_text(
        "[server]\nPORT = 15050\n\n[webif]\nENABLED = 1\nPORT = 8181  # admin ui\n",
        encoding="utf-8",
    )
    return cfg


def pytest_collection_modifyitems(config, items) -> None:
    # Integration tests spawn /bin/sh children; skip where that is unavailable
    if os.name == "nt":
        skip = pytest.mark.skip(reason="integration tests need a POSIX shell")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip)
