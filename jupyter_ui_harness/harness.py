# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
UI regression harness.

Ties the pieces together for one test suite:

- fixtures are seeded through the contents API and tracked for teardown,
- a per-test JupyterLab session is driven by action sequences,
- captures are compared to committed baselines, failing hard or soft.
"""

import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from playwright.async_api import ElementHandle, Locator, Page
from playwright.async_api import Error as PlaywrightError

from jupyter_ui_harness.actions import Action
from jupyter_ui_harness.contents import ContentsHelper
from jupyter_ui_harness.errors import (
    ActionError,
    HarnessError,
    NotFoundError,
    SnapshotMismatchError,
    TransferError,
)
from jupyter_ui_harness.jupyterlab import JupyterLabPage, wrap_timeout
from jupyter_ui_harness.models import Fixture, Snapshot, SnapshotComparison
from jupyter_ui_harness.outputs import cell_text_outputs, detect_error_in_output
from jupyter_ui_harness.snapshots import SnapshotStore, SoftAssertions

logger = logging.getLogger(__name__)

StepHook = Callable[[int, Action], Awaitable[None]]
CaptureTarget = Union[Locator, ElementHandle, Page, str, int]


class UIRegressionHarness:
    """Fixture seeding, scripted UI driving and baseline comparison."""

    def __init__(
        self,
        contents: ContentsHelper,
        store: SnapshotStore,
        working_directory: Optional[str] = None,
    ):
        self.contents = contents
        self.store = store
        self.working_directory = working_directory
        self.soft = SoftAssertions()
        self.fixtures: List[Fixture] = []
        self._lab: Optional[JupyterLabPage] = None

    # Session
    # =======

    @property
    def lab(self) -> JupyterLabPage:
        if self._lab is None:
            raise HarnessError("No JupyterLab session attached to the harness")
        return self._lab

    def attach(self, lab: JupyterLabPage) -> None:
        self._lab = lab

    def detach(self) -> None:
        self._lab = None

    # Fixtures
    # ========

    async def upload_fixture(self, path: Union[str, Path], destination: str) -> Fixture:
        """Copy a local file into the server and remember it for teardown."""
        fixture = Fixture(name=Path(path).name, source=Path(path), destination=destination)
        await self.contents.upload_file(fixture.source, fixture.destination)
        self.fixtures.append(fixture)
        return fixture

    async def upload_fixtures(self, paths: Sequence[Union[str, Path]], directory: str) -> List[Fixture]:
        uploaded = []
        for path in paths:
            fixture = Fixture.from_path(path, directory)
            uploaded.append(await self.upload_fixture(fixture.source, fixture.destination))
        return uploaded

    async def teardown_fixtures(self) -> List[str]:
        """Remove every uploaded fixture and the working directory.

        All deletions are attempted; the first failure is re-raised afterwards.
        """
        removed = []
        first_error: Optional[TransferError] = None

        for fixture in reversed(self.fixtures):
            try:
                if await self.contents.delete_file(fixture.destination):
                    removed.append(fixture.destination)
            except TransferError as e:
                logger.error(f"Failed to remove fixture {fixture.destination}: {e}")
                first_error = first_error or e
        self.fixtures.clear()

        if self.working_directory:
            try:
                if await self.contents.delete_directory(self.working_directory):
                    removed.append(self.working_directory)
            except TransferError as e:
                logger.error(f"Failed to remove working directory {self.working_directory}: {e}")
                first_error = first_error or e

        if first_error is not None:
            raise first_error
        logger.info(f"Removed {len(removed)} fixture path(s)")
        return removed

    # Driving the UI
    # ==============

    async def open_document(self, path: str) -> None:
        """Open ``path`` in the session; ``NotFoundError`` if the server lacks it."""
        if not await self.contents.file_exists(path):
            raise NotFoundError(f"Document not found: {path}", path=path)
        await wrap_timeout(f"open {path}", self.lab.notebook.open_by_path(path))

    async def run_sequentially(
        self,
        actions: Sequence[Action],
        on_step: Optional[StepHook] = None,
    ) -> int:
        """Run ``actions`` one at a time.

        ``on_step(position, action)`` is awaited after each action and before the
        next one starts. Raises ``ActionError`` on the first failing action and
        returns the number of actions run otherwise.
        """
        for position, action in enumerate(actions):
            logger.debug(f"Step {position}: {action.describe()}")
            try:
                await action.perform(self.lab)
            except HarnessError:
                raise
            except PlaywrightError as e:
                raise ActionError(
                    f"Step {position} ({action.describe()}) failed: {e}",
                    step=position,
                    action=action.describe(),
                )
            if on_step is not None:
                await on_step(position, action)
        return len(actions)

    # Snapshots
    # =========

    async def settle(self) -> None:
        """Wait for running cells to finish and the next frame to paint."""
        if await self.lab.page.locator(".jp-NotebookPanel:not(.lm-mod-hidden)").count():
            await wrap_timeout("wait for the notebook to settle", self.lab.notebook.wait_for_run())
        await self.lab.next_frame()

    async def capture_snapshot(self, target: CaptureTarget, name: str = "") -> Snapshot:
        """Capture an image of a UI region or the text output of a cell.

        ``target`` may be a Playwright locator, element handle or page, a CSS
        selector, or a cell index (text capture of that cell's outputs).
        """
        await self.settle()

        if isinstance(target, int):
            outputs = await self.lab.notebook.get_cell_text_output(target)
            return Snapshot(name=name or f"cell-{target}", kind="text", data="\n".join(outputs or []))

        if isinstance(target, str):
            target = self.lab.page.locator(target).first

        data = await wrap_timeout(
            f"capture {name or 'snapshot'}",
            target.screenshot(animations="disabled", caret="hide"),
        )
        return Snapshot(name=name, kind="image", data=data)

    def compare_to_baseline(self, snapshot: Snapshot, name: str, soft: bool = False) -> SnapshotComparison:
        """Compare with the stored baseline; raise now, or defer when ``soft``."""
        comparison = self.store.compare(snapshot, name)
        if not comparison.passed:
            message = f"{name}: {comparison.message}"
            if soft:
                self.soft.record(message)
            else:
                raise SnapshotMismatchError(message, comparison=comparison)
        return comparison

    def expect_soft(self, condition: bool, message: str) -> bool:
        return self.soft.check(condition, message)

    def verify_soft_assertions(self) -> None:
        self.soft.verify()

    async def cell_text_output(self, cell_index: int) -> List[str]:
        """Rendered text outputs of a cell in the active notebook.

        Raises ``ActionError`` if the cell rendered a traceback.
        """
        outputs = await wrap_timeout(
            f"read outputs of cell {cell_index}",
            self.lab.notebook.get_cell_text_output(cell_index),
        )
        return _reject_errors(outputs or [], f"cell {cell_index}")

    async def saved_cell_text_output(self, path: str, cell_index: int) -> List[str]:
        """Text outputs of a cell as saved on disk, read through the contents API.

        Raises ``ActionError`` if the saved outputs hold a traceback.
        """
        notebook = await self.contents.read_notebook(path)
        return _reject_errors(cell_text_outputs(notebook, cell_index), f"cell {cell_index} of {path}")


def _reject_errors(outputs: List[str], where: str) -> List[str]:
    for text in outputs:
        error = detect_error_in_output(text)
        if error is not None:
            logger.error(f"Exception in {where}: {error['message']}")
            raise ActionError(f"{where} raised {error['type']}: {error['message']}", action=f"read {where}")
    return outputs
