# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
User-equivalent actions applied to a JupyterLab session.

An action sequence is a plain list of ``Action`` objects; the harness runs
them strictly one after the other (see ``UIRegressionHarness.run_sequentially``).
"""

from typing import List, Optional

from jupyter_ui_harness.jupyterlab import JupyterLabPage, StepCallback


class Action:
    """One scripted user operation."""

    def describe(self) -> str:
        return type(self).__name__

    async def perform(self, lab: JupyterLabPage) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{self.describe()}>"


class OpenFile(Action):
    def __init__(self, path: str):
        self.path = path

    def describe(self) -> str:
        return f"open {self.path}"

    async def perform(self, lab: JupyterLabPage) -> None:
        await lab.notebook.open_by_path(self.path)


class ActivateNotebook(Action):
    def __init__(self, name: str):
        self.name = name

    def describe(self) -> str:
        return f"activate {self.name}"

    async def perform(self, lab: JupyterLabPage) -> None:
        await lab.notebook.activate(self.name)


class ClickMenuItem(Action):
    def __init__(self, path: str):
        self.path = path

    def describe(self) -> str:
        return f"click menu {self.path}"

    async def perform(self, lab: JupyterLabPage) -> None:
        await lab.menu.click_menu_item(self.path)


class ConfirmDialog(Action):
    def describe(self) -> str:
        return "confirm dialog"

    async def perform(self, lab: JupyterLabPage) -> None:
        await lab.accept_dialog()


class PressKeys(Action):
    """Send a key combination to the active notebook ``times`` times."""

    def __init__(self, keys: str, times: int = 1):
        self.keys = keys
        self.times = times

    def describe(self) -> str:
        suffix = f" x{self.times}" if self.times != 1 else ""
        return f"press {self.keys}{suffix}"

    async def perform(self, lab: JupyterLabPage) -> None:
        notebook = await lab.notebook.get_notebook_in_panel()
        for _ in range(self.times):
            await notebook.press(self.keys)


class WaitForSelector(Action):
    """Wait for ``selector`` inside the active notebook (or the whole page)."""

    def __init__(self, selector: str, in_notebook: bool = True):
        self.selector = selector
        self.in_notebook = in_notebook

    def describe(self) -> str:
        return f"wait for {self.selector}"

    async def perform(self, lab: JupyterLabPage) -> None:
        if self.in_notebook:
            notebook = await lab.notebook.get_notebook_in_panel()
            await notebook.locator(self.selector).first.wait_for()
        else:
            await lab.page.wait_for_selector(self.selector)


class ClickCell(Action):
    def __init__(self, index: int):
        self.index = index

    def describe(self) -> str:
        return f"click cell {self.index}"

    async def perform(self, lab: JupyterLabPage) -> None:
        cell = await lab.notebook.get_cell(self.index)
        await cell.click()


class RunAll(Action):
    def describe(self) -> str:
        return "run all cells"

    async def perform(self, lab: JupyterLabPage) -> None:
        await lab.notebook.run()


class WaitForRun(Action):
    def describe(self) -> str:
        return "wait for run"

    async def perform(self, lab: JupyterLabPage) -> None:
        await lab.notebook.wait_for_run()


class RunCellByCell(Action):
    def __init__(self, on_before_scroll: Optional[StepCallback] = None):
        self.on_before_scroll = on_before_scroll

    def describe(self) -> str:
        return "run cell by cell"

    async def perform(self, lab: JupyterLabPage) -> None:
        await lab.notebook.run_cell_by_cell(on_before_scroll=self.on_before_scroll)


class SaveNotebook(Action):
    def describe(self) -> str:
        return "save notebook"

    async def perform(self, lab: JupyterLabPage) -> None:
        await lab.notebook.save()


# Restart variants
# ================

RESTART_KERNEL = "Kernel>Restart Kernel…"
RESTART_AND_RUN_ALL = "Kernel>Restart Kernel and Run All Cells…"


def restart_and_run_all() -> List[Action]:
    """Single command: restart the kernel and run every cell."""
    return [ClickMenuItem(RESTART_AND_RUN_ALL), ConfirmDialog(), WaitForRun()]


def restart_then_run_all() -> List[Action]:
    return [ClickMenuItem(RESTART_KERNEL), ConfirmDialog(), RunAll()]


def restart_then_run_cell_by_cell() -> List[Action]:
    return [ClickMenuItem(RESTART_KERNEL), ConfirmDialog(), RunCellByCell()]


def restart_then_run_with_keyboard(cell_count: int, last_prompt: int) -> List[Action]:
    """Restart, then Shift+Enter through the notebook and Ctrl+Enter the last cell.

    ``last_prompt`` is the execution count the last code cell shows once done.
    """
    return [
        ClickMenuItem(RESTART_KERNEL),
        ConfirmDialog(),
        PressKeys("Shift+Enter", times=cell_count - 1),
        PressKeys("Control+Enter"),
        WaitForSelector(f".jp-InputArea-prompt >> text=[{last_prompt}]"),
        WaitForRun(),
    ]
