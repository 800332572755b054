# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

from datetime import datetime
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class Fixture(BaseModel):
    """A local file seeded into the server before the suite runs."""

    name: str
    source: Path
    destination: str

    @classmethod
    def from_path(cls, source: Union[str, Path], directory: str) -> "Fixture":
        source = Path(source)
        destination = f"{directory.rstrip('/')}/{source.name}" if directory else source.name
        return cls(name=source.name, source=source, destination=destination)


class ContentsEntry(BaseModel):
    """Subset of the Jupyter contents model read back by the harness."""

    name: str
    path: str
    type: str
    size: Optional[int] = None
    last_modified: Optional[str] = None
    format: Optional[str] = None
    content: Any = None

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"


class Snapshot(BaseModel):
    """A captured image (PNG bytes) or text value."""

    name: str
    kind: Literal["image", "text"]
    data: Union[bytes, str]
    captured_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_image(self) -> bool:
        return self.kind == "image"


class SnapshotComparison(BaseModel):
    name: str
    passed: bool
    message: str = ""
    diff_pixels: int = 0
    diff_ratio: float = 0.0
    baseline_path: Optional[Path] = None
    actual_path: Optional[Path] = None
    diff_path: Optional[Path] = None
