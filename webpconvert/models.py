from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .errors import ScanError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})
OUTPUT_SUFFIX = ".webp"
OUTPUT_WEBP = "webp"
OUTPUT_SAME = "same"
OUTPUT_CUSTOM = "custom"
OUTPUT_MODES = (OUTPUT_WEBP, OUTPUT_SAME, OUTPUT_CUSTOM)


@dataclass(frozen=True)
class ConvertSettings:
    quality: float = 0.8
    delete_original: bool = True
    output_directory: str = OUTPUT_WEBP
    custom_output_path: str = ""
    concurrent_limit: int = 5

    @property
    def quality_percent(self) -> int:
        return quality_to_percent(self.quality)

    @property
    def deletes_originals(self) -> bool:
        return self.delete_original and normalize_output_mode(self.output_directory) != OUTPUT_SAME


@dataclass(frozen=True)
class ConvertResult:
    source: Path
    output: Path
    success: bool
    original_size: int
    compressed_size: int
    engine: str
    error: str | None = None
    error_kind: str | None = None


@dataclass(frozen=True)
class FileOutcome:
    result: ConvertResult
    deleted: bool


@dataclass(frozen=True)
class ConvertStats:
    converted_count: int = 0
    deleted_count: int = 0
    total_original_size: int = 0
    total_compressed_size: int = 0

    @property
    def saved_size(self) -> int:
        return self.total_original_size - self.total_compressed_size

    @property
    def compression_ratio(self) -> str:
        return compression_ratio(self.total_original_size, self.total_compressed_size)

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[FileOutcome]) -> ConvertStats:
        converted = deleted = before = after = 0
        for outcome in outcomes:
            result = outcome.result
            if not result.success:
                continue
            converted += 1
            before += result.original_size
            after += result.compressed_size
            if outcome.deleted:
                deleted += 1
        return cls(converted, deleted, before, after)


def normalize_output_mode(mode: str) -> str:
    mode = (mode or "").strip().lower()
    if mode in OUTPUT_MODES:
        return mode
    return OUTPUT_WEBP


def quality_to_percent(quality: float) -> int:
    return max(0, min(100, math.floor(quality * 100 + 0.5)))


def is_image_file(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    index = 0
    while size >= 1024 ** (index + 1) and index < len(units) - 1:
        index += 1
    text = f"{size / 1024**index:.1f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"


def compression_ratio(original_size: int, compressed_size: int) -> str:
    if original_size == 0:
        return "0.0"
    return f"{(1 - compressed_size / original_size) * 100:.1f}"


def iter_image_files(root: Path) -> list[Path]:
    files: list[Path] = []
    pending = [root]
    while pending:
        directory = pending.pop()
        try:
            entries = _list_directory(directory)
        except ScanError as exc:
            logger.warning("扫描目录失败 %s", exc)
            continue
        subdirs = []
        for entry in entries:
            path = Path(entry.path)
            if entry.is_dir():
                subdirs.append(path)
            elif entry.is_file() and is_image_file(path):
                files.append(path)
        # reversed so the stack pops subdirectories in sorted order
        pending.extend(reversed(subdirs))
    return files


def _list_directory(directory: Path) -> list[os.DirEntry[str]]:
    try:
        with os.scandir(directory) as iterator:
            return sorted(iterator, key=lambda entry: entry.name)
    except OSError as exc:
        raise ScanError(directory, exc.strerror or str(exc)) from exc


def collect_image_files(paths: Iterable[Path | str]) -> list[Path]:
    files: list[Path] = []
    for raw in paths:
        path = Path(os.path.normpath(Path(raw).absolute()))
        try:
            if path.is_file() and is_image_file(path):
                files.append(path)
            elif path.is_dir():
                files.extend(iter_image_files(path))
            else:
                logger.debug("跳过不支持的路径 %s", path)
        except OSError as exc:
            logger.warning("无法访问路径 %s: %s", path, exc.strerror or exc)
    return list(dict.fromkeys(files))
