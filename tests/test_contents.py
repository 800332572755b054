#!/usr/bin/env python3
"""
Unit Test Suite for the Contents API helper

Runs ContentsHelper against an in-memory Jupyter contents server to check
uploads, directory handling, deletion and error mapping.
"""

import json
import tempfile
import unittest
from pathlib import Path

from jupyter_ui_harness.contents import ContentsHelper
from jupyter_ui_harness.errors import NotFoundError, TransferError
from tests.fakes import BASE_URL, FakeContentsServer, make_notebook


class ContentsTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.server = FakeContentsServer(token="MY_TOKEN")
        self.contents = ContentsHelper(BASE_URL, "MY_TOKEN", transport=self.server.transport)
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    async def asyncTearDown(self):
        await self.contents.aclose()

    def local_file(self, name: str, data: bytes) -> Path:
        path = Path(self.tmp.name) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path


class TestUpload(ContentsTestCase):
    """Test fixture uploads"""

    async def test_upload_creates_missing_parent_directories(self):
        """Test that nested destinations get their directories created"""
        source = self.local_file("WidgetArch.png", b"\x89PNG\r\n\x1a\nfake")

        entry = await self.contents.upload_file(source, "suite/images/WidgetArch.png")

        self.assertEqual(entry.path, "suite/images/WidgetArch.png")
        self.assertEqual(self.server.entries["suite"]["type"], "directory")
        self.assertEqual(self.server.entries["suite/images"]["type"], "directory")
        self.assertEqual(self.server.entries["suite/images/WidgetArch.png"]["content"], b"\x89PNG\r\n\x1a\nfake")

    async def test_upload_sends_token(self):
        """Test that every request carries the authorization header"""
        await self.contents.upload_content("hello", "hello.txt")

        self.assertTrue(self.server.requests)
        for request in self.server.requests:
            self.assertEqual(request.headers["Authorization"], "token MY_TOKEN")

    async def test_upload_notebook_is_readable_back(self):
        """Test that an uploaded notebook can be read as notebook JSON"""
        source = self.local_file("simple.ipynb", make_notebook([{"cell_type": "markdown", "source": "# Title"}]))

        await self.contents.upload_file(source, "suite/simple.ipynb")
        notebook = await self.contents.read_notebook("suite/simple.ipynb")

        self.assertEqual(notebook["cells"][0]["source"], "# Title")

    async def test_upload_directory(self):
        """Test recursive directory upload"""
        self.local_file("data/a.txt", b"a")
        self.local_file("data/nested/b.txt", b"b")

        uploaded = await self.contents.upload_directory(Path(self.tmp.name) / "data", "suite/data")

        self.assertEqual([entry.path for entry in uploaded], ["suite/data/a.txt", "suite/data/nested/b.txt"])
        self.assertEqual(self.server.files(), ["suite/data/a.txt", "suite/data/nested/b.txt"])

    async def test_unreachable_server_raises_transfer_error(self):
        """Test that a connection failure becomes TransferError"""
        self.server.reachable = False

        with self.assertRaises(TransferError):
            await self.contents.upload_content(b"x", "x.txt")

    async def test_rejected_upload_raises_transfer_error(self):
        """Test that a non-2xx answer on write becomes TransferError"""
        contents = ContentsHelper(BASE_URL, "WRONG", transport=self.server.transport)
        self.addAsyncCleanup(contents.aclose)

        with self.assertRaises(TransferError) as ctx:
            await contents.upload_content(b"x", "x.txt")
        self.assertEqual(ctx.exception.status_code, 403)

    async def test_missing_local_file_raises_transfer_error(self):
        """Test that an unreadable fixture is reported as a transfer failure"""
        with self.assertRaises(TransferError):
            await self.contents.upload_file(Path(self.tmp.name) / "missing.ipynb", "missing.ipynb")


class TestRead(ContentsTestCase):
    """Test existence checks and listings"""

    async def test_exists_checks(self):
        self.server.add_file("suite/notebook.ipynb", make_notebook([]))

        self.assertTrue(await self.contents.file_exists("suite/notebook.ipynb"))
        self.assertTrue(await self.contents.directory_exists("suite"))
        self.assertFalse(await self.contents.file_exists("suite"))
        self.assertFalse(await self.contents.directory_exists("suite/notebook.ipynb"))
        self.assertFalse(await self.contents.file_exists("other.ipynb"))

    async def test_get_missing_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            await self.contents.get("nope.ipynb")

    async def test_list_directory(self):
        self.server.add_file("suite/a.txt", b"a")
        self.server.add_file("suite/b.txt", b"bb")

        items = await self.contents.list_directory("suite")

        self.assertEqual([item.name for item in items], ["a.txt", "b.txt"])
        self.assertEqual(items[1].size, 2)

    async def test_url_quotes_path(self):
        self.assertEqual(
            self.contents.url("my dir/file.ipynb"),
            f"{BASE_URL}/api/contents/my%20dir/file.ipynb",
        )
        self.assertEqual(self.contents.url(""), f"{BASE_URL}/api/contents")


class TestDelete(ContentsTestCase):
    """Test deletion"""

    async def test_delete_directory_is_recursive(self):
        """Test that a populated directory is emptied before removal"""
        self.server.add_file("suite/a.ipynb", make_notebook([]))
        self.server.add_file("suite/img/b.png", b"png")
        self.server.add_file("keep.txt", b"keep")

        deleted = await self.contents.delete_directory("suite")

        self.assertTrue(deleted)
        self.assertEqual(self.server.paths(), ["keep.txt"])

    async def test_delete_missing_returns_false(self):
        self.assertFalse(await self.contents.delete_file("nope.txt"))
        self.assertFalse(await self.contents.delete_directory("nope"))

    async def test_delete_failure_raises_transfer_error(self):
        self.server.add_file("suite/a.txt", b"a")
        self.server.fail_deletes.add("suite/a.txt")

        with self.assertRaises(TransferError):
            await self.contents.delete_file("suite/a.txt")

    async def test_rename(self):
        self.server.add_file("old.txt", b"x")

        entry = await self.contents.rename("old.txt", "new.txt")

        self.assertEqual(entry.path, "new.txt")
        self.assertEqual(self.server.files(), ["new.txt"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
