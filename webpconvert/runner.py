from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable

from .convert import Encoder, assign_output_paths, convert_file
from .errors import DeleteError
from .models import (
    OUTPUT_SAME,
    ConvertSettings,
    ConvertStats,
    FileOutcome,
    collect_image_files,
    compression_ratio,
    format_file_size,
    normalize_output_mode,
)
from .scheduler import ProgressCallback, run_bounded

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[int], bool]


def run_conversion(
    input_paths: Iterable[Path | str],
    settings: ConvertSettings,
    *,
    encoder: Encoder | None = None,
    confirm: ConfirmCallback | None = None,
    on_progress: ProgressCallback | None = None,
) -> ConvertStats:
    files = collect_image_files(input_paths)
    if not files:
        logger.warning("未找到支持的图片文件")
        return ConvertStats()
    if normalize_output_mode(settings.output_directory) == OUTPUT_SAME:
        if confirm is None or not confirm(len(files)):
            logger.warning("用户取消了原地替换操作")
            return ConvertStats()
    log_header(files, settings)
    outcomes = convert_batch(files, settings, encoder=encoder, on_progress=on_progress)
    stats = ConvertStats.from_outcomes(outcomes)
    log_footer(stats, len(files))
    return stats


def convert_batch(
    files: list[Path],
    settings: ConvertSettings,
    *,
    encoder: Encoder | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[FileOutcome]:
    total = len(files)
    outputs = assign_output_paths(files, settings)
    delete = settings.deletes_originals

    def make_task(index: int, source: Path, output: Path) -> Callable[[], FileOutcome]:
        def task() -> FileOutcome:
            result = convert_file(source, output, settings.quality, encoder)
            prefix = f"[{index}/{total}] {source.name}"
            if not result.success:
                logger.warning("✗ %s - 失败: %s", prefix, result.error)
                return FileOutcome(result, False)
            logger.info(
                "✓ %s - %s → %s (压缩 %s%%)",
                prefix,
                format_file_size(result.original_size),
                format_file_size(result.compressed_size),
                compression_ratio(result.original_size, result.compressed_size),
            )
            deleted = False
            if delete:
                try:
                    delete_original(source)
                    deleted = True
                except DeleteError as exc:
                    logger.warning("删除失败 %s", exc)
            return FileOutcome(result, deleted)

        return task

    tasks = [
        make_task(index, source, output)
        for index, (source, output) in enumerate(zip(files, outputs), start=1)
    ]
    return run_bounded(tasks, settings.concurrent_limit, on_progress)


def delete_original(path: Path) -> None:
    try:
        path.unlink()
    except OSError as exc:
        raise DeleteError(path, f"无法删除原文件 ({exc.strerror or exc})") from exc


def log_header(files: list[Path], settings: ConvertSettings) -> None:
    logger.info("========== 开始转换 ==========")
    logger.info("转换文件数: %d", len(files))
    logger.info("并发限制: %d", max(1, settings.concurrent_limit))
    logger.info("输出模式: %s", normalize_output_mode(settings.output_directory))
    logger.info("转换质量: %d%%", settings.quality_percent)


def log_footer(stats: ConvertStats, total: int) -> None:
    logger.info("========== 转换完成 ==========")
    logger.info("成功: %d/%d", stats.converted_count, total)
    logger.info("失败: %d", total - stats.converted_count)
    if stats.deleted_count:
        logger.info("已删除原文件: %d", stats.deleted_count)
