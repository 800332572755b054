# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
pytest plugin exposing the harness as fixtures.

Fixture scopes follow the suite lifecycle:

- ``contents``, ``harness`` and ``browser`` live for one test module, so
  fixtures uploaded in module setup are removed once the module is done;
- ``jupyterlab`` is a fresh browser context per test (one session per test).

All async fixtures run on the module event loop; test modules using them
must be marked ``pytest.mark.asyncio(loop_scope="module")``.
"""

import logging
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from playwright.async_api import async_playwright

from jupyter_ui_harness import config as harness_config
from jupyter_ui_harness.contents import ContentsHelper
from jupyter_ui_harness.harness import UIRegressionHarness
from jupyter_ui_harness.jupyterlab import JupyterLabPage
from jupyter_ui_harness.snapshots import SnapshotStore

logger = logging.getLogger(__name__)

SESSION_FIXTURE = "jupyterlab"


def pytest_addoption(parser):
    group = parser.getgroup("jupyter-ui-harness")
    group.addoption("--jupyter-url", default=harness_config.JUPYTER_URL, help="JupyterLab server URL.")
    group.addoption("--jupyter-token", default=harness_config.JUPYTER_TOKEN, help="JupyterLab server token.")
    group.addoption(
        "--update-snapshots",
        action="store_true",
        default=harness_config.UPDATE_SNAPSHOTS,
        help="Rewrite baselines with the captured snapshots.",
    )
    group.addoption(
        "--harness-browser",
        default=harness_config.BROWSER,
        choices=["chromium", "firefox", "webkit"],
        help="Playwright browser to drive.",
    )
    group.addoption("--headed", action="store_true", default=not harness_config.HEADLESS, help="Show the browser.")


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "harness_serial: skip the remaining tests of the module/class once one fails"
    )
    config.addinivalue_line("markers", "e2e: needs a running JupyterLab (enable with HARNESS_E2E=1)")


def pytest_collection_modifyitems(config, items):
    skip_e2e = pytest.mark.skip(reason="end-to-end tests are disabled, set HARNESS_E2E=1")
    for item in items:
        if item.get_closest_marker("e2e") and not harness_config.E2E_ENABLED:
            item.add_marker(skip_e2e)
        if SESSION_FIXTURE in getattr(item, "fixturenames", ()) and not item.get_closest_marker("timeout"):
            item.add_marker(pytest.mark.timeout(harness_config.TEST_TIMEOUT))


# Serial suites
# =============

def pytest_runtest_setup(item):
    if item.get_closest_marker("harness_serial") is None:
        return
    failed = getattr(item.parent, "_harness_failed", None)
    if failed is not None:
        pytest.skip(f"previous test failed ({failed})")


@pytest.hookimpl(wrapper=True)
def pytest_runtest_makereport(item, call):
    report = yield
    if item.get_closest_marker("harness_serial") is not None and report.failed and call.when != "teardown":
        item.parent._harness_failed = item.name
    return report


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item):
    harness = getattr(item, "funcargs", {}).get("harness")
    try:
        result = yield
    except BaseException:
        if isinstance(harness, UIRegressionHarness):
            for failure in harness.soft.reset():
                logger.warning(f"Soft assertion dropped after hard failure: {failure}")
        raise
    if isinstance(harness, UIRegressionHarness):
        harness.verify_soft_assertions()
    return result


# Fixtures
# ========

@pytest.fixture(scope="session")
def harness_options(pytestconfig) -> dict:
    return {
        "base_url": pytestconfig.getoption("jupyter_url"),
        "token": pytestconfig.getoption("jupyter_token"),
        "update_snapshots": pytestconfig.getoption("update_snapshots"),
        "browser": pytestconfig.getoption("harness_browser"),
        "headless": not pytestconfig.getoption("headed"),
        "viewport": harness_config.parse_viewport(harness_config.VIEWPORT),
    }


@pytest.fixture(scope="module")
def jupyter_tmp_path(request) -> str:
    """Server-side working directory for the module; override to pin a name."""
    return f"{Path(request.module.__file__).stem}-{uuid.uuid4().hex[:8]}"


@pytest_asyncio.fixture(scope="module", loop_scope="module")
async def contents(harness_options):
    async with ContentsHelper(harness_options["base_url"], harness_options["token"]) as helper:
        yield helper


@pytest_asyncio.fixture(scope="module", loop_scope="module")
async def harness(request, contents, harness_options, jupyter_tmp_path):
    module_path = Path(request.module.__file__)
    store = SnapshotStore.for_test_module(
        module_path,
        results_dir=Path(harness_config.RESULTS_DIR) / module_path.stem,
        update=harness_options["update_snapshots"],
    )
    suite = UIRegressionHarness(contents, store, working_directory=jupyter_tmp_path)
    try:
        yield suite
    finally:
        await suite.teardown_fixtures()


@pytest_asyncio.fixture(scope="module", loop_scope="module")
async def browser(harness_options):
    playwright = await async_playwright().start()
    try:
        browser_type = getattr(playwright, harness_options["browser"])
        instance = await browser_type.launch(headless=harness_options["headless"])
        try:
            yield instance
        finally:
            await instance.close()
    finally:
        await playwright.stop()


@pytest_asyncio.fixture(loop_scope="module")
async def jupyterlab(browser, harness, harness_options):
    """A fresh JupyterLab session, attached to ``harness`` for the test."""
    context = await browser.new_context(viewport=harness_options["viewport"])
    try:
        page = await context.new_page()
        lab = JupyterLabPage(page, harness_options["base_url"], harness_options["token"])
        await lab.goto()
        harness.attach(lab)
        yield lab
    finally:
        harness.detach()
        await context.close()
