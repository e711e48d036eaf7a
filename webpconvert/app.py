from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .models import OUTPUT_MODES, ConvertSettings, ConvertStats, format_file_size
from .runner import ConfirmCallback, run_conversion
from .settings import load_settings, open_settings, save_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webpconvert",
        description="批量将 JPG/PNG 图片转换为 WebP",
    )
    parser.add_argument("paths", nargs="+", type=Path, help="图片文件或文件夹")
    parser.add_argument("-q", "--quality", type=float, help="转换质量 (0.0-1.0)")
    delete_group = parser.add_mutually_exclusive_group()
    delete_group.add_argument(
        "--delete", dest="delete_original", action="store_true", default=None, help="转换后删除原文件"
    )
    delete_group.add_argument(
        "--keep", dest="delete_original", action="store_false", help="保留原文件"
    )
    parser.set_defaults(delete_original=None)
    parser.add_argument("-o", "--output", choices=OUTPUT_MODES, help="输出模式")
    parser.add_argument("--custom-path", help="自定义输出目录 (输出模式为 custom 时使用)")
    parser.add_argument("-j", "--jobs", type=int, help="并发数量")
    parser.add_argument("--config", type=Path, help="INI 配置文件")
    parser.add_argument("--save", action="store_true", help="保存本次设置")
    parser.add_argument("-y", "--yes", action="store_true", help="原地替换模式下跳过确认")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    return parser


def resolve_settings(args: argparse.Namespace, base: ConvertSettings) -> ConvertSettings:
    overrides: dict[str, object] = {}
    if args.quality is not None:
        overrides["quality"] = max(0.0, min(1.0, args.quality))
    if args.delete_original is not None:
        overrides["delete_original"] = args.delete_original
    if args.output is not None:
        overrides["output_directory"] = args.output
    if args.custom_path is not None:
        overrides["custom_output_path"] = args.custom_path
    if args.jobs is not None:
        overrides["concurrent_limit"] = max(1, args.jobs)
    return dataclasses.replace(base, **overrides)


def make_confirm(assume_yes: bool) -> ConfirmCallback:
    def confirm(file_count: int) -> bool:
        if assume_yes:
            return True
        if not sys.stdin.isatty():
            logger.warning("非交互环境下无法确认原地替换，请使用 --yes")
            return False
        answer = input(
            f"⚠️ 原地替换模式将在原文件旁写入 WebP！共 {file_count} 个文件将被替换，此操作不可恢复。确认替换? [y/N] "
        )
        return answer.strip().lower() in {"y", "yes"}

    return confirm


def format_report(stats: ConvertStats) -> list[str]:
    lines = [f"✅ 转换完成: {stats.converted_count} 张图片"]
    if stats.total_original_size > 0:
        lines.append(
            f"📊 大小对比: {format_file_size(stats.total_original_size)} → "
            f"{format_file_size(stats.total_compressed_size)}"
        )
        lines.append(f"📉 压缩率: {stats.compression_ratio}%")
        lines.append(f"💾 节省空间: {format_file_size(stats.saved_size)}")
    if stats.deleted_count > 0:
        lines.append(f"🗑️ 已删除原文件: {stats.deleted_count} 个")
    return lines


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)
    store = open_settings(args.config)
    settings = resolve_settings(args, load_settings(store))
    if args.save:
        save_settings(settings, store)
    bar: tqdm | None = None

    def on_progress(completed: int, total: int) -> None:
        nonlocal bar
        if bar is None:
            bar = tqdm(total=total, unit="张", desc="转换 WebP", leave=False)
        bar.update(1)

    with logging_redirect_tqdm():
        try:
            stats = run_conversion(
                args.paths,
                settings,
                confirm=make_confirm(args.yes),
                on_progress=on_progress,
            )
        finally:
            if bar is not None:
                bar.close()
    if stats.converted_count == 0:
        logger.warning("没有找到可转换的图片文件")
        return 1
    for line in format_report(stats):
        logger.info(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
