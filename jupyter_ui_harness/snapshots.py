# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
Baseline storage and comparison for captured snapshots.

Baselines are committed next to the tests, in ``<module>-snapshots/``, and
named ``<stem>-<platform><suffix>`` so that renders from different operating
systems never overwrite each other. When a comparison fails the actual
capture, the expected baseline and a diff image are written to the results
directory for inspection.
"""

import io
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional, Tuple, Union

from PIL import Image, ImageChops

from jupyter_ui_harness import config
from jupyter_ui_harness.errors import SoftAssertionError
from jupyter_ui_harness.models import Snapshot, SnapshotComparison

logger = logging.getLogger(__name__)

DIFF_COLOR = (255, 0, 80)


def diff_images(
    actual: Image.Image,
    expected: Image.Image,
    pixel_threshold: float = 0.2,
) -> Tuple[int, Image.Image]:
    """Count pixels whose largest channel difference exceeds the threshold.

    ``pixel_threshold`` is a fraction of the full 0-255 channel range.
    Returns the count and a diff image: the actual render dimmed, with
    differing pixels painted in ``DIFF_COLOR``.
    """
    actual = actual.convert("RGB")
    expected = expected.convert("RGB")

    difference = ImageChops.difference(actual, expected)
    red, green, blue = difference.split()
    largest = ImageChops.lighter(ImageChops.lighter(red, green), blue)

    tolerance = int(round(pixel_threshold * 255))
    mask = largest.point(lambda value: 255 if value > tolerance else 0)
    count = mask.histogram()[255]

    diff = Image.eval(actual, lambda value: value // 3)
    diff.paste(DIFF_COLOR, mask=mask)
    return count, diff


def allowed_diff_pixels(total: int, max_diff_pixels: int, max_diff_pixel_ratio: float) -> int:
    """Number of differing pixels tolerated in an image of ``total`` pixels."""
    return max(max_diff_pixels, int(max_diff_pixel_ratio * total))


class SnapshotStore:
    """Reads, writes and compares baselines for one test module."""

    def __init__(
        self,
        snapshot_dir: Union[str, Path],
        results_dir: Optional[Union[str, Path]] = None,
        update: Optional[bool] = None,
        pixel_threshold: Optional[float] = None,
        max_diff_pixels: Optional[int] = None,
        max_diff_pixel_ratio: Optional[float] = None,
        platform: Optional[str] = None,
    ):
        self.snapshot_dir = Path(snapshot_dir)
        self.results_dir = Path(results_dir or config.RESULTS_DIR)
        self.update = config.UPDATE_SNAPSHOTS if update is None else update
        self.pixel_threshold = config.PIXEL_THRESHOLD if pixel_threshold is None else pixel_threshold
        self.max_diff_pixels = config.MAX_DIFF_PIXELS if max_diff_pixels is None else max_diff_pixels
        self.max_diff_pixel_ratio = (
            config.MAX_DIFF_PIXEL_RATIO if max_diff_pixel_ratio is None else max_diff_pixel_ratio
        )
        self.platform = platform or sys.platform

    @classmethod
    def for_test_module(cls, module_path: Union[str, Path], **kwargs) -> "SnapshotStore":
        module_path = Path(module_path)
        return cls(module_path.parent / f"{module_path.name}-snapshots", **kwargs)

    def _split(self, name: str, kind: str) -> Tuple[str, str]:
        path = Path(name)
        suffix = path.suffix or (".png" if kind == "image" else ".txt")
        return path.stem, suffix

    def baseline_path(self, name: str, kind: str = "image") -> Path:
        stem, suffix = self._split(name, kind)
        return self.snapshot_dir / f"{stem}-{self.platform}{suffix}"

    def _result_path(self, name: str, kind: str, label: str) -> Path:
        stem, suffix = self._split(name, kind)
        return self.results_dir / f"{stem}-{label}{suffix}"

    def _write(self, path: Path, snapshot: Snapshot) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if snapshot.is_image:
            path.write_bytes(snapshot.data)
        else:
            path.write_text(str(snapshot.data), encoding="utf-8")

    def compare(self, snapshot: Snapshot, name: str) -> SnapshotComparison:
        """Compare ``snapshot`` with the baseline stored under ``name``."""
        baseline = self.baseline_path(name, snapshot.kind)

        if not baseline.exists():
            self._write(baseline, snapshot)
            if self.update:
                logger.info(f"Wrote new baseline {baseline}")
                return SnapshotComparison(
                    name=name, passed=True, message="baseline written", baseline_path=baseline
                )
            logger.warning(f"Missing baseline {baseline}, wrote actual capture")
            return SnapshotComparison(
                name=name,
                passed=False,
                message=f"A snapshot doesn't exist at {baseline}, writing actual.",
                baseline_path=baseline,
            )

        if snapshot.is_image:
            comparison = self._compare_image(snapshot, name, baseline)
        else:
            comparison = self._compare_text(snapshot, name, baseline)

        if not comparison.passed and self.update:
            self._write(baseline, snapshot)
            logger.info(f"Updated baseline {baseline}")
            return comparison.model_copy(update={"passed": True, "message": "baseline updated"})

        if not comparison.passed:
            self._save_failure_artifacts(snapshot, name, baseline, comparison)
        return comparison

    def _compare_image(self, snapshot: Snapshot, name: str, baseline: Path) -> SnapshotComparison:
        with Image.open(io.BytesIO(snapshot.data)) as actual, Image.open(baseline) as expected:
            if actual.size != expected.size:
                return SnapshotComparison(
                    name=name,
                    passed=False,
                    message=f"Expected an image {expected.size[0]}px by {expected.size[1]}px, "
                            f"received {actual.size[0]}px by {actual.size[1]}px.",
                    baseline_path=baseline,
                )
            count, diff = diff_images(actual, expected, self.pixel_threshold)
            total = actual.size[0] * actual.size[1]

        ratio = count / total if total else 0.0
        allowed = allowed_diff_pixels(total, self.max_diff_pixels, self.max_diff_pixel_ratio)

        if count <= allowed:
            return SnapshotComparison(
                name=name, passed=True, diff_pixels=count, diff_ratio=ratio, baseline_path=baseline
            )

        comparison = SnapshotComparison(
            name=name,
            passed=False,
            message=f"{count} pixels (ratio {ratio:.4f}) are different.",
            diff_pixels=count,
            diff_ratio=ratio,
            baseline_path=baseline,
        )
        diff_path = self._result_path(name, "image", "diff")
        diff_path.parent.mkdir(parents=True, exist_ok=True)
        diff.save(diff_path)
        comparison.diff_path = diff_path
        return comparison

    def _compare_text(self, snapshot: Snapshot, name: str, baseline: Path) -> SnapshotComparison:
        expected = baseline.read_text(encoding="utf-8").strip()
        actual = str(snapshot.data).strip()
        if actual == expected:
            return SnapshotComparison(name=name, passed=True, baseline_path=baseline)
        return SnapshotComparison(
            name=name,
            passed=False,
            message=f"Expected {expected!r}, received {actual!r}.",
            baseline_path=baseline,
        )

    def _save_failure_artifacts(
        self, snapshot: Snapshot, name: str, baseline: Path, comparison: SnapshotComparison
    ) -> None:
        actual_path = self._result_path(name, snapshot.kind, "actual")
        self._write(actual_path, snapshot)
        expected_path = self._result_path(name, snapshot.kind, "expected")
        shutil.copyfile(baseline, expected_path)
        comparison.actual_path = actual_path
        logger.warning(f"Snapshot '{name}' mismatch: {comparison.message} (see {actual_path})")


class SoftAssertions:
    """Collects failures that must not stop the running test."""

    def __init__(self):
        self.failures: List[str] = []

    def __len__(self) -> int:
        return len(self.failures)

    def record(self, message: str) -> None:
        logger.warning(f"Soft assertion failed: {message}")
        self.failures.append(message)

    def check(self, condition: bool, message: str) -> bool:
        if not condition:
            self.record(message)
        return bool(condition)

    def verify(self) -> None:
        """Raise ``SoftAssertionError`` if anything was recorded, then reset."""
        if self.failures:
            failures, self.failures = self.failures, []
            raise SoftAssertionError(failures)

    def reset(self) -> List[str]:
        """Drop recorded failures, e.g. when the test already failed hard."""
        failures, self.failures = self.failures, []
        return failures
