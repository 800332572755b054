# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
Playwright helpers for driving a JupyterLab page.

``JupyterLabPage`` wraps a Playwright ``Page`` and exposes the user-level
operations a UI test needs (open a directory, click a menu entry, run
cells, accept a dialog) grouped by area: ``filebrowser``, ``menu`` and
``notebook``. All selectors target the JupyterLab 4 DOM.
"""

import logging
import posixpath
import re
from typing import Awaitable, Callable, List, Optional
from urllib.parse import quote

from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from jupyter_ui_harness import config
from jupyter_ui_harness.errors import ActionError, NotFoundError

logger = logging.getLogger(__name__)

DIALOG_SELECTOR = ".jp-Dialog-content"
DIALOG_ACCEPT_SELECTOR = ".jp-Dialog-button.jp-mod-accept"
DIALOG_REJECT_SELECTOR = ".jp-Dialog-button.jp-mod-reject"
DIALOG_WARN_SELECTOR = ".jp-Dialog-button.jp-mod-warn"

ACTIVE_PANEL_SELECTOR = ".jp-NotebookPanel:not(.lm-mod-hidden)"
TAB_SELECTOR = ".lm-DockPanel-tabBar .lm-TabBar-tab"

# True once the active notebook has no running prompt and an idle kernel.
_RUN_FINISHED_JS = """
() => {
  const panel = document.querySelector('.jp-NotebookPanel:not(.lm-mod-hidden)');
  if (!panel) {
    return false;
  }
  const running = [...panel.querySelectorAll('.jp-InputArea-prompt')]
    .some(prompt => (prompt.textContent || '').includes('[*]'));
  const indicator = panel.querySelector('.jp-Notebook-ExecutionIndicator');
  const idle = !indicator || indicator.getAttribute('data-status') === 'idle';
  return !running && idle;
}
"""

_NEXT_FRAME_JS = "() => new Promise(resolve => requestAnimationFrame(() => resolve(true)))"

StepCallback = Callable[[], Awaitable[None]]


def _exact(text: str) -> "re.Pattern[str]":
    return re.compile(rf"^\s*{re.escape(text)}\s*$")


class JupyterLabPage:
    """A Playwright page pointed at a running JupyterLab."""

    def __init__(
        self,
        page: Page,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ):
        self.page = page
        self.base_url = (base_url or config.JUPYTER_URL).rstrip("/")
        self.token = token if token is not None else config.JUPYTER_TOKEN
        self.timeout_ms = timeout_ms or config.ACTION_TIMEOUT_MS
        self.page.set_default_timeout(self.timeout_ms)

        self.filebrowser = FileBrowserHelper(self)
        self.menu = MenuHelper(self)
        self.notebook = NotebookHelper(self)

    def url(self, path: str = "", reset: bool = True) -> str:
        url = f"{self.base_url}/lab"
        if path:
            url += f"/tree/{quote(path.strip('/'))}"
        params = []
        if reset:
            params.append("reset")
        if self.token:
            params.append(f"token={self.token}")
        if params:
            url += "?" + "&".join(params)
        return url

    async def goto(self, path: str = "", reset: bool = True) -> None:
        """Load JupyterLab (optionally with a clean workspace) and wait for it."""
        await self.page.goto(self.url(path, reset=reset))
        await self.wait_for_app_started()

    async def wait_for_app_started(self) -> None:
        await self.page.wait_for_selector("#jupyterlab-splash", state="detached")
        await self.page.wait_for_selector("#jp-main-dock-panel", state="visible")
        logger.debug("JupyterLab application started")

    async def reset(self) -> None:
        await self.goto(reset=True)

    async def add_style_tag(self, content: str) -> None:
        await self.page.add_style_tag(content=content)

    async def press(self, keys: str) -> None:
        await self.page.keyboard.press(keys)

    async def next_frame(self) -> None:
        await self.page.evaluate(_NEXT_FRAME_JS)

    async def is_dialog_visible(self, timeout_ms: int = 0) -> bool:
        try:
            await self.page.wait_for_selector(DIALOG_SELECTOR, state="visible", timeout=timeout_ms or 1)
            return True
        except PlaywrightTimeoutError:
            return False

    async def accept_dialog(self) -> None:
        """Wait for the modal dialog and click its accept button."""
        await self.page.wait_for_selector(DIALOG_SELECTOR)
        await self.page.click(DIALOG_ACCEPT_SELECTOR)
        await self.page.wait_for_selector(DIALOG_SELECTOR, state="detached")

    async def dismiss_dialog(self) -> None:
        await self.page.wait_for_selector(DIALOG_SELECTOR)
        await self.page.click(DIALOG_REJECT_SELECTOR)
        await self.page.wait_for_selector(DIALOG_SELECTOR, state="detached")


class FileBrowserHelper:
    """Navigation in the left-hand file browser."""

    def __init__(self, lab: JupyterLabPage):
        self.lab = lab

    @property
    def page(self) -> Page:
        return self.lab.page

    def item(self, name: str) -> Locator:
        return self.page.locator(
            ".jp-DirListing-content .jp-DirListing-item",
            has=self.page.locator(".jp-DirListing-itemText", has_text=_exact(name)),
        )

    async def reveal(self) -> None:
        """Make sure the file browser side panel is shown."""
        tab = self.page.locator('.jp-SideBar [data-id="filebrowser"]')
        if await tab.count() and "lm-mod-current" not in (await tab.get_attribute("class") or ""):
            await tab.click()
        await self.page.wait_for_selector(".jp-DirListing-content", state="visible")

    async def open_directory(self, path: str) -> None:
        """Navigate the file browser to ``path`` (relative to the server root)."""
        await self.reveal()
        await self.page.click(".jp-BreadCrumbs-home")
        for part in [p for p in path.strip("/").split("/") if p]:
            item = self.item(part)
            try:
                await item.wait_for(state="visible")
            except PlaywrightTimeoutError:
                raise NotFoundError(f"Directory not found in file browser: {part}", path=path)
            await item.dblclick()
            await self.page.locator(".jp-BreadCrumbs-item", has_text=_exact(part)).last.wait_for()
        logger.debug(f"File browser at /{path.strip('/')}")

    async def is_file_listed(self, name: str) -> bool:
        return await self.item(name).count() > 0

    async def open(self, path: str) -> None:
        """Open the file at ``path`` by double-clicking it."""
        directory, name = posixpath.split(path.strip("/"))
        await self.open_directory(directory)
        item = self.item(name)
        try:
            await item.wait_for(state="visible")
        except PlaywrightTimeoutError:
            raise NotFoundError(f"File not found in file browser: {path}", path=path)
        await item.dblclick()


class MenuHelper:
    """Main menu bar access using ``Top>Sub>Item`` paths."""

    def __init__(self, lab: JupyterLabPage):
        self.lab = lab

    @property
    def page(self) -> Page:
        return self.lab.page

    def _open_menus(self) -> Locator:
        return self.page.locator(".lm-Menu:visible")

    def _menu_item(self, label: str) -> Locator:
        return self._open_menus().last.locator(
            ".lm-Menu-item",
            has=self.page.locator(".lm-Menu-itemLabel", has_text=_exact(label)),
        )

    async def click_menu_item(self, path: str) -> None:
        """Click a nested main-menu entry, e.g. ``Kernel>Restart Kernel…``."""
        parts = [part.strip() for part in path.split(">")]
        if len(parts) < 2:
            raise ValueError(f"Menu path needs at least two levels: '{path}'")

        top = self.page.locator(".lm-MenuBar-item", has_text=_exact(parts[0]))
        if await top.count() == 0:
            raise NotFoundError(f"Menu not found: {parts[0]}", path=path)
        await top.first.click()

        for depth, label in enumerate(parts[1:], start=1):
            item = self._menu_item(label)
            try:
                await item.first.wait_for(state="visible")
            except PlaywrightTimeoutError:
                await self.close_all()
                raise NotFoundError(f"Menu item not found: {'>'.join(parts[:depth + 1])}", path=path)
            if depth == len(parts) - 1:
                await item.first.click()
            else:
                await item.first.hover()
        logger.debug(f"Clicked menu item {path}")

    async def close_all(self) -> None:
        while await self._open_menus().count() > 0:
            await self.page.keyboard.press("Escape")


class NotebookHelper:
    """Operations on the active notebook panel."""

    def __init__(self, lab: JupyterLabPage):
        self.lab = lab

    @property
    def page(self) -> Page:
        return self.lab.page

    def _tab(self, name: str) -> Locator:
        return self.page.locator(
            TAB_SELECTOR,
            has=self.page.locator(".lm-TabBar-tabLabel", has_text=_exact(name)),
        )

    def panel(self) -> Locator:
        return self.page.locator(ACTIVE_PANEL_SELECTOR).first

    async def get_notebook_in_panel(self) -> Locator:
        notebook = self.panel().locator(".jp-NotebookPanel-notebook")
        await notebook.wait_for(state="visible")
        return notebook

    async def get_cell(self, index: int) -> Locator:
        notebook = await self.get_notebook_in_panel()
        cell = notebook.locator(".jp-Cell").nth(index)
        try:
            await cell.wait_for(state="attached")
        except PlaywrightTimeoutError:
            raise NotFoundError(f"Cell {index} not found in the active notebook")
        return cell

    async def get_cell_count(self) -> int:
        notebook = await self.get_notebook_in_panel()
        return await notebook.locator(".jp-Cell").count()

    async def is_open(self, name: str) -> bool:
        return await self._tab(name).count() > 0

    async def is_active(self, name: str) -> bool:
        tab = self._tab(name)
        if await tab.count() == 0:
            return False
        return "lm-mod-current" in (await tab.first.get_attribute("class") or "")

    async def activate(self, name: str) -> bool:
        """Bring the notebook tab ``name`` to the front."""
        tab = self._tab(name)
        if await tab.count() == 0:
            raise NotFoundError(f"Notebook tab not open: {name}", path=name)
        await tab.first.click()
        await self.page.locator(f"{TAB_SELECTOR}.lm-mod-current", has_text=_exact(name)).wait_for()
        return True

    async def wait_for_kernel_ready(self) -> None:
        await self.panel().locator('.jp-Notebook-ExecutionIndicator[data-status="idle"]').wait_for()

    async def open_by_path(self, path: str) -> None:
        """Open a notebook through the file browser and wait for its kernel."""
        name = posixpath.basename(path)
        await self.lab.filebrowser.open(path)
        await self._tab(name).first.wait_for()
        await self.get_notebook_in_panel()
        await self.wait_for_kernel_ready()
        logger.info(f"Opened notebook {path}")

    async def wait_for_run(self, timeout_ms: Optional[int] = None) -> None:
        """Wait until no cell is running and the kernel reports idle."""
        await self.lab.next_frame()
        await self.page.wait_for_function(_RUN_FINISHED_JS, timeout=timeout_ms or self.lab.timeout_ms)

    async def run(self) -> None:
        await self.lab.menu.click_menu_item("Run>Run All Cells")
        await self.wait_for_run()

    async def select_cell(self, index: int) -> Locator:
        cell = await self.get_cell(index)
        await cell.scroll_into_view_if_needed()
        await cell.locator(".jp-InputArea-prompt").first.click()
        return cell

    async def run_cell(self, index: int) -> None:
        """Run one cell in place, without advancing the selection."""
        await self.select_cell(index)
        await self.page.keyboard.press("Control+Enter")
        await self.wait_for_run()

    async def run_cell_by_cell(
        self,
        on_before_scroll: Optional[StepCallback] = None,
        on_after_scroll: Optional[StepCallback] = None,
    ) -> int:
        """Run every cell one after the other.

        ``on_before_scroll`` is awaited after each cell has finished and before
        the next cell is scrolled into view. Returns the number of cells run.
        """
        count = await self.get_cell_count()
        for index in range(count):
            await self.run_cell(index)
            if on_before_scroll:
                await on_before_scroll()
            if index + 1 < count:
                cell = await self.get_cell(index + 1)
                await cell.scroll_into_view_if_needed()
            if on_after_scroll:
                await on_after_scroll()
        return count

    async def save(self) -> None:
        notebook = await self.get_notebook_in_panel()
        await notebook.focus()
        await self.page.keyboard.press("ControlOrMeta+s")
        await self.page.locator(f"{TAB_SELECTOR}.lm-mod-current.jp-mod-dirty").wait_for(state="detached")
        logger.debug("Notebook saved")

    async def close(self, revert_changes: bool = False) -> bool:
        """Close the active notebook, discarding or saving pending changes."""
        tab = self.page.locator(f"{TAB_SELECTOR}.lm-mod-current")
        if await tab.count() == 0:
            return False
        name = (await tab.first.locator(".lm-TabBar-tabLabel").inner_text()).strip()
        await tab.first.locator(".lm-TabBar-tabCloseIcon").click()

        if await self.lab.is_dialog_visible(timeout_ms=2000):
            if revert_changes:
                await self.page.click(DIALOG_WARN_SELECTOR)
            else:
                await self.page.click(DIALOG_ACCEPT_SELECTOR)
            await self.page.wait_for_selector(DIALOG_SELECTOR, state="detached")

        await self._tab(name).wait_for(state="detached")
        logger.info(f"Closed notebook {name}")
        return True

    async def get_cell_text_output(self, index: int) -> Optional[List[str]]:
        """Return the rendered text of each output of a code cell.

        Returns None for markdown and raw cells.
        """
        cell = await self.get_cell(index)
        if "jp-CodeCell" not in (await cell.get_attribute("class") or ""):
            return None
        return await cell.locator(".jp-OutputArea-output").all_inner_texts()

    async def restart_kernel(self) -> None:
        await self.lab.menu.click_menu_item("Kernel>Restart Kernel…")
        await self.lab.accept_dialog()
        await self.wait_for_kernel_ready()


async def wrap_timeout(description: str, awaitable: Awaitable):
    """Await ``awaitable``, turning a Playwright timeout into ``ActionError``."""
    try:
        return await awaitable
    except PlaywrightTimeoutError as e:
        raise ActionError(f"Timed out while trying to {description}: {e}", action=description)
