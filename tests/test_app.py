from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from webpconvert import app
from webpconvert.models import ConvertSettings, ConvertStats

from .support import make_jpeg, make_png


class ResolveSettingsTests(unittest.TestCase):
    def test_flags_override_stored_values(self):
        args = app.build_parser().parse_args(
            ["x", "--quality", "0.6", "--keep", "--output", "custom", "--custom-path", "out", "--jobs", "0"]
        )
        settings = app.resolve_settings(args, ConvertSettings())
        self.assertEqual(
            settings,
            ConvertSettings(
                quality=0.6,
                delete_original=False,
                output_directory="custom",
                custom_output_path="out",
                concurrent_limit=1,
            ),
        )

    def test_no_flags_keep_stored_values(self):
        stored = ConvertSettings(quality=0.3, delete_original=False, concurrent_limit=9)
        args = app.build_parser().parse_args(["x"])
        self.assertEqual(app.resolve_settings(args, stored), stored)

    def test_delete_flag(self):
        args = app.build_parser().parse_args(["x", "--delete"])
        settings = app.resolve_settings(args, ConvertSettings(delete_original=False))
        self.assertTrue(settings.delete_original)


class ConfirmTests(unittest.TestCase):
    def test_assume_yes(self):
        self.assertTrue(app.make_confirm(True)(3))

    def test_prompt_answers(self):
        confirm = app.make_confirm(False)
        with mock.patch("sys.stdin") as stdin, mock.patch("builtins.input", side_effect=["y", "", "no"]):
            stdin.isatty.return_value = True
            self.assertTrue(confirm(2))
            self.assertFalse(confirm(2))
            self.assertFalse(confirm(2))

    def test_non_interactive_declines(self):
        with mock.patch("sys.stdin") as stdin:
            stdin.isatty.return_value = False
            self.assertFalse(app.make_confirm(False)(1))


class ReportTests(unittest.TestCase):
    def test_report_lines(self):
        lines = app.format_report(ConvertStats(2, 2, 3 * 1024, 1024))
        self.assertEqual(lines[0], "✅ 转换完成: 2 张图片")
        self.assertIn("📊 大小对比: 3 KB → 1 KB", lines)
        self.assertIn("📉 压缩率: 66.7%", lines)
        self.assertIn("💾 节省空间: 2 KB", lines)
        self.assertIn("🗑️ 已删除原文件: 2 个", lines)

    def test_report_without_deletions(self):
        lines = app.format_report(ConvertStats(1, 0, 0, 0))
        self.assertEqual(lines, ["✅ 转换完成: 1 张图片"])


class MainTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.config = self.root / "config.ini"

    def tearDown(self):
        self._tmp.cleanup()

    def test_converts_directory(self):
        images = self.root / "images"
        make_jpeg(images / "a.jpg")
        make_png(images / "b.png")
        code = app.main([str(images), "--keep", "--jobs", "2", "--config", str(self.config)])
        self.assertEqual(code, 0)
        self.assertTrue((images / "webp" / "a.webp").exists())
        self.assertTrue((images / "webp" / "b.webp").exists())
        self.assertTrue((images / "a.jpg").exists())

    def test_save_writes_config(self):
        images = self.root / "images"
        make_jpeg(images / "a.jpg")
        app.main([str(images), "--keep", "--quality", "0.5", "--save", "--config", str(self.config)])
        self.assertIn("quality=0.5", self.config.read_text(encoding="utf-8"))

    def test_nothing_to_convert(self):
        self.assertEqual(app.main([str(self.root / "missing"), "--config", str(self.config)]), 1)

    def test_confirmation_prompt_comes_before_progress_bar(self):
        images = self.root / "images"
        make_jpeg(images / "a.jpg")
        bars_at_prompt = []

        with mock.patch.object(app, "tqdm") as bar_factory, mock.patch("sys.stdin") as stdin:
            stdin.isatty.return_value = True

            def answer(prompt: str) -> str:
                bars_at_prompt.append(bar_factory.call_count)
                return "y"

            with mock.patch("builtins.input", side_effect=answer):
                code = app.main([str(images), "--output", "same", "--config", str(self.config)])
        self.assertEqual(code, 0)
        self.assertEqual(bars_at_prompt, [0])
        bar_factory.assert_called_once()
        bar_factory.return_value.close.assert_called_once()
        self.assertTrue((images / "a.webp").exists())
