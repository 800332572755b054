#!/usr/bin/env python3
"""
End-to-end suite: run a notebook in JupyterLab and check what it renders.

Needs a running JupyterLab (JUPYTER_URL / JUPYTER_TOKEN) and HARNESS_E2E=1.
The tests run in order and share the notebook uploaded at module setup; the
first test saves the outputs the following ones read back.
"""

from pathlib import Path

import pytest
import pytest_asyncio

from jupyter_ui_harness import actions, config
from jupyter_ui_harness.outputs import parse_float, parse_int

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.harness_serial,
    pytest.mark.asyncio(loop_scope="module"),
]

NOTEBOOKS = Path(__file__).parent / "notebooks"
FILE_NAME = "simple_notebook.ipynb"


@pytest.fixture(scope="module")
def jupyter_tmp_path():
    return "notebook-run-test"


@pytest_asyncio.fixture(scope="module", loop_scope="module", autouse=True)
async def notebook_fixtures(harness, jupyter_tmp_path):
    await harness.upload_fixtures(
        [NOTEBOOKS / FILE_NAME, NOTEBOOKS / "WidgetArch.png"],
        jupyter_tmp_path,
    )
    yield


@pytest_asyncio.fixture(loop_scope="module", autouse=True)
async def tmp_directory(jupyterlab, jupyter_tmp_path):
    await jupyterlab.filebrowser.open_directory(jupyter_tmp_path)
    yield


@pytest.fixture
def notebook_path(jupyter_tmp_path):
    return f"{jupyter_tmp_path}/{FILE_NAME}"


async def test_run_notebook_and_capture_cell_outputs(harness, jupyterlab, notebook_path):
    await harness.open_document(notebook_path)
    await harness.run_sequentially([actions.ActivateNotebook(FILE_NAME)])

    captures = []

    async def capture_panel():
        panel = await jupyterlab.notebook.get_notebook_in_panel()
        captures.append(await harness.capture_snapshot(panel, name=f"notebook-panel-{len(captures)}"))

    await harness.run_sequentially([actions.RunCellByCell(on_before_scroll=capture_panel)])

    # Outputs are read back by the following tests
    await harness.run_sequentially([actions.SaveNotebook()])
    await capture_panel()

    assert len(captures) == await jupyterlab.notebook.get_cell_count() + 1
    for index, snapshot in enumerate(captures):
        harness.compare_to_baseline(snapshot, f"notebook-panel-{index}.png", soft=True)


async def test_check_cell_output_1(harness, jupyterlab, notebook_path):
    await harness.open_document(notebook_path)

    output = await harness.cell_text_output(5)

    assert parse_int(output[0]) == 4


async def test_check_cell_output_2(harness, jupyterlab, notebook_path):
    await harness.open_document(notebook_path)

    output = await harness.cell_text_output(6)

    assert parse_float(output[0]) > 1.5


async def test_saved_outputs_match_rendered(harness, jupyterlab, notebook_path):
    await harness.open_document(notebook_path)

    rendered = await harness.cell_text_output(5)
    saved = await harness.saved_cell_text_output(notebook_path, 5)

    assert [text.strip() for text in rendered] == [text.strip() for text in saved]


async def test_close_notebook(harness, jupyterlab, notebook_path):
    await harness.open_document(notebook_path)

    assert await jupyterlab.notebook.close(revert_changes=True)


@pytest.mark.timeout(60 * max(config.RESTART_REPEATS, 1))
async def test_restart_kernel_and_execute_cells(harness, jupyterlab, notebook_path):
    await harness.open_document(notebook_path)
    await harness.run_sequentially([actions.ActivateNotebook(FILE_NAME)])

    panel = await jupyterlab.notebook.get_notebook_in_panel()
    cell_count = await jupyterlab.notebook.get_cell_count()
    await jupyterlab.add_style_tag(".jp-cell-toolbar{display: none}")

    variants = [
        actions.restart_and_run_all(),
        actions.restart_then_run_all(),
        actions.restart_then_run_cell_by_cell(),
        actions.restart_then_run_with_keyboard(cell_count, last_prompt=4),
    ]

    for _ in range(config.RESTART_REPEATS):
        for variant in variants:
            # Clicking the first cell keeps hover effects out of the capture
            await harness.run_sequentially([*variant, actions.ClickCell(0)])
            snapshot = await harness.capture_snapshot(panel, name="restart-and-run")
            harness.compare_to_baseline(snapshot, "restart-and-run.png")
