from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from pathlib import Path
from threading import Lock
from typing import Callable, Iterable

from PIL import Image

from .errors import CodecError, ConversionError, StatError, WriteError
from .models import (
    OUTPUT_CUSTOM,
    OUTPUT_SAME,
    OUTPUT_SUFFIX,
    ConvertResult,
    ConvertSettings,
    normalize_output_mode,
    quality_to_percent,
)

logger = logging.getLogger(__name__)

Encoder = Callable[[Path, Path, int], str]

WINDOWS_CREATIONFLAGS = (
    getattr(subprocess, "CREATE_NO_WINDOW", 0) if sys.platform.startswith("win") else 0
)
WEBP_MODES = {"RGB", "RGBA"}
_TOOL_CACHE: dict[tuple[str, ...], str | None] = {}
_TOOL_LOCK = Lock()


def build_output_path(source: Path, settings: ConvertSettings) -> Path:
    file_name = f"{source.stem}{OUTPUT_SUFFIX}"
    mode = normalize_output_mode(settings.output_directory)
    if mode == OUTPUT_SAME:
        return source.parent / file_name
    if mode == OUTPUT_CUSTOM and settings.custom_output_path:
        custom_dir = Path(settings.custom_output_path)
        if not custom_dir.is_absolute():
            custom_dir = source.parent / custom_dir
        return custom_dir / file_name
    return source.parent / "webp" / file_name


def assign_output_paths(files: Iterable[Path], settings: ConvertSettings) -> list[Path]:
    taken: set[Path] = set()
    outputs = []
    for source in files:
        candidate = build_output_path(source, settings)
        index = 1
        unique = candidate
        while unique in taken:
            unique = candidate.with_name(f"{candidate.stem}({index}){OUTPUT_SUFFIX}")
            index += 1
        taken.add(unique)
        outputs.append(unique)
    return outputs


def convert_file(
    source: Path,
    output: Path,
    quality: float,
    encoder: Encoder | None = None,
) -> ConvertResult:
    encoder = encoder or encode_webp
    quality_percent = quality_to_percent(quality)
    try:
        original_size = _file_size(source, StatError, "无法读取原文件")
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteError(output.parent, f"无法创建输出目录 ({exc.strerror or exc})") from exc
        try:
            engine = encoder(source, output, quality_percent)
        except ConversionError:
            raise
        except Exception as exc:
            raise CodecError(source, f"编码失败 ({exc})") from exc
        compressed_size = _file_size(output, WriteError, "输出文件未生成")
    except ConversionError as exc:
        return ConvertResult(
            source, output, False, 0, 0, "无", str(exc), type(exc).__name__
        )
    return ConvertResult(source, output, True, original_size, compressed_size, engine)


def _file_size(path: Path, error: type[ConversionError], message: str) -> int:
    try:
        return path.stat().st_size
    except OSError as exc:
        raise error(path, f"{message} ({exc.strerror or exc})") from exc


def encode_webp(source: Path, output: Path, quality: int) -> str:
    cwebp = get_tool_executable(["cwebp"])
    if cwebp and run_cwebp(cwebp, source, output, quality):
        return "cwebp"
    encode_with_pillow(source, output, quality)
    return "Pillow"


def encode_with_pillow(source: Path, output: Path, quality: int) -> None:
    try:
        with Image.open(source) as image:
            if image.mode not in WEBP_MODES:
                has_alpha = "A" in image.getbands() or "transparency" in image.info
                image = image.convert("RGBA" if has_alpha else "RGB")
            image.save(output, format="WEBP", quality=quality, method=6)
    except (OSError, ValueError) as exc:
        output.unlink(missing_ok=True)
        raise CodecError(source, f"Pillow 编码失败 ({exc})") from exc


def run_cwebp(cwebp: str, source: Path, output: Path, quality: int) -> bool:
    command = [
        cwebp,
        "-quiet",
        "-q",
        str(max(0, min(100, quality))),
        "-m",
        "6",
        "-metadata",
        "none",
        str(source),
        "-o",
        str(output),
    ]
    try:
        result = run_command(command)
    except OSError as exc:
        logger.debug("cwebp 无法运行 %s: %s", cwebp, exc)
        return False
    if result.returncode != 0:
        logger.debug("cwebp 转换失败 %s: %s", source, result.stderr.decode(errors="replace").strip())
        return False
    return output.exists()


def get_tool_executable(names: list[str]) -> str | None:
    key = tuple(names)
    with _TOOL_LOCK:
        if key in _TOOL_CACHE:
            return _TOOL_CACHE[key]
    found = None
    for name in names:
        found = shutil.which(name)
        if found:
            break
    with _TOOL_LOCK:
        _TOOL_CACHE[key] = found
    logger.debug("编码工具 %s: %s", "/".join(names), found or "未找到，使用 Pillow")
    return found


def run_command(command: list[str]) -> subprocess.CompletedProcess[bytes]:
    return subprocess.run(command, capture_output=True, creationflags=WINDOWS_CREATIONFLAGS)
