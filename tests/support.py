from __future__ import annotations

import threading
import time
from pathlib import Path

from PIL import Image


def make_jpeg(path: Path, size: tuple[int, int] = (32, 24)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, (200, 80, 40)).save(path, format="JPEG", quality=95)
    return path


def make_png(path: Path, mode: str = "RGBA", size: tuple[int, int] = (24, 24)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    color = 3 if mode == "P" else (10, 120, 220, 128)[: len(mode)]
    Image.new(mode, size, color).save(path, format="PNG")
    return path


def write_bytes(path: Path, size: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xff" * size)
    return path


class FakeEncoder:
    """Writes ``ratio`` of the source size and records every call."""

    def __init__(self, ratio: float = 0.5, fail_names: set[str] | None = None, delay: float = 0.0) -> None:
        self.ratio = ratio
        self.fail_names = fail_names or set()
        self.delay = delay
        self.calls: list[tuple[Path, Path, int]] = []
        self._lock = threading.Lock()

    def __call__(self, source: Path, output: Path, quality: int) -> str:
        with self._lock:
            self.calls.append((source, output, quality))
        if self.delay:
            time.sleep(self.delay)
        if source.name in self.fail_names:
            raise ValueError("cannot identify image file")
        output.write_bytes(b"W" * int(source.stat().st_size * self.ratio))
        return "fake"
