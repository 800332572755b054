#!/usr/bin/env python3
"""
Suite-level tests for the pytest plugin

Each test writes a small suite that uses the plugin's fixtures against the
in-memory contents server, runs it with ``pytester`` and checks the outcomes
together with what is left on the server afterwards.
"""

import json
from pathlib import Path

from tests import fakes

FAKE_SERVER = """
from fakes import BASE_URL, FakeContentsServer

SERVER = FakeContentsServer()
SEEN = []
"""

CONFTEST = """
import json
from pathlib import Path

import pytest_asyncio

from fake_server import BASE_URL, SEEN, SERVER
from jupyter_ui_harness.contents import ContentsHelper


@pytest_asyncio.fixture(scope="module", loop_scope="module")
async def contents():
    async with ContentsHelper(BASE_URL, "", transport=SERVER.transport) as helper:
        yield helper


def pytest_sessionfinish(session):
    state = {"remaining": SERVER.paths(), "seen": SEEN}
    Path(session.config.rootpath, "server.json").write_text(json.dumps(state))
"""

SEEDED = """
import pytest
import pytest_asyncio

from fake_server import SEEN, SERVER


@pytest_asyncio.fixture(scope="module", loop_scope="module", autouse=True)
async def seeded(harness, jupyter_tmp_path, tmp_path_factory):
    source = tmp_path_factory.mktemp("fixtures") / "simple_notebook.ipynb"
    source.write_text("{}")
    await harness.upload_fixture(source, f"{jupyter_tmp_path}/simple_notebook.ipynb")
    SEEN.extend(SERVER.files())
    yield
"""


def write_suite(pytester, test_body):
    pytester.makepyfile(fakes=Path(fakes.__file__).read_text(), fake_server=FAKE_SERVER)
    pytester.makeconftest(CONFTEST)
    pytester.makepyfile(test_suite=SEEDED + test_body)


def server_state(pytester):
    return json.loads((pytester.path / "server.json").read_text())


def test_serial_suite_defers_soft_failures_and_skips_the_rest(pytester):
    """Test that soft failures fail the test at its end and later tests are skipped"""
    write_suite(pytester, """
pytestmark = [pytest.mark.harness_serial, pytest.mark.asyncio(loop_scope="module")]


async def test_panels(harness):
    harness.expect_soft(False, "notebook-panel-0.png differs")
    harness.expect_soft(False, "notebook-panel-1.png differs")
    assert SERVER.files()


async def test_cell_output(harness):
    pass


async def test_close(harness):
    pass
""")

    result = pytester.runpytest()

    result.assert_outcomes(failed=1, skipped=2)
    result.stdout.fnmatch_lines(["*2 soft assertion(s) failed*"])
    state = server_state(pytester)
    assert state["seen"]
    assert state["remaining"] == []


def test_hard_failure_drops_pending_soft_failures(pytester):
    """Test that soft failures recorded before a hard one do not leak into the next test"""
    write_suite(pytester, """
pytestmark = pytest.mark.asyncio(loop_scope="module")


async def test_hard_failure(harness):
    harness.expect_soft(False, "pending soft failure")
    assert False, "hard failure"


async def test_next_test_starts_clean(harness):
    assert len(harness.soft) == 0
""")

    result = pytester.runpytest()

    result.assert_outcomes(failed=1, passed=1)
    assert "SoftAssertionError" not in result.stdout.str()
    assert server_state(pytester)["remaining"] == []


def test_passing_suite_removes_fixtures(pytester):
    write_suite(pytester, """
pytestmark = [pytest.mark.harness_serial, pytest.mark.asyncio(loop_scope="module")]


async def test_fixture_is_on_the_server(harness, jupyter_tmp_path):
    assert await harness.contents.file_exists(f"{jupyter_tmp_path}/simple_notebook.ipynb")
""")

    result = pytester.runpytest()

    result.assert_outcomes(passed=1)
    state = server_state(pytester)
    assert len(state["seen"]) == 1
    assert state["remaining"] == []


def test_e2e_marker_skips_without_opt_in(pytester, monkeypatch):
    monkeypatch.setattr("jupyter_ui_harness.config.E2E_ENABLED", False)
    pytester.makepyfile("""
import pytest


@pytest.mark.e2e
def test_needs_jupyterlab():
    pass
""")

    result = pytester.runpytest()

    result.assert_outcomes(skipped=1)
