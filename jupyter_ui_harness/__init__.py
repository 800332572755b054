# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""UI regression harness for JupyterLab, built on Playwright."""

from jupyter_ui_harness.contents import ContentsHelper
from jupyter_ui_harness.errors import (
    ActionError,
    HarnessError,
    NotFoundError,
    SnapshotMismatchError,
    SoftAssertionError,
    TransferError,
)
from jupyter_ui_harness.harness import UIRegressionHarness
from jupyter_ui_harness.jupyterlab import JupyterLabPage
from jupyter_ui_harness.models import Fixture, Snapshot, SnapshotComparison
from jupyter_ui_harness.snapshots import SnapshotStore, SoftAssertions

__version__ = "0.1.0"

__all__ = [
    "ActionError",
    "ContentsHelper",
    "Fixture",
    "HarnessError",
    "JupyterLabPage",
    "NotFoundError",
    "Snapshot",
    "SnapshotComparison",
    "SnapshotMismatchError",
    "SnapshotStore",
    "SoftAssertionError",
    "SoftAssertions",
    "TransferError",
    "UIRegressionHarness",
]
