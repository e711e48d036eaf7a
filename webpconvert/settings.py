from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, TypeVar

from PySide6.QtCore import QSettings

from .models import ConvertSettings, normalize_output_mode

ORGANIZATION = "webpconvert"
APPLICATION = "webpconvert"
GROUP = "convert-to-webp"
DEFAULTS = ConvertSettings()

T = TypeVar("T")

logger = logging.getLogger(__name__)


def open_settings(path: Path | str | None = None) -> QSettings:
    if path is not None:
        return QSettings(str(path), QSettings.Format.IniFormat)
    return QSettings(ORGANIZATION, APPLICATION)


def load_settings(store: QSettings | None = None) -> ConvertSettings:
    store = store if store is not None else open_settings()
    store.beginGroup(GROUP)
    try:
        quality = _read(store, "quality", DEFAULTS.quality, float)
        delete_original = _read(store, "deleteOriginal", DEFAULTS.delete_original, _to_bool)
        output_directory = _read(store, "outputDirectory", DEFAULTS.output_directory, str)
        custom_output_path = _read(store, "customOutputPath", DEFAULTS.custom_output_path, str)
        concurrent_limit = _read(store, "concurrentLimit", DEFAULTS.concurrent_limit, int)
    finally:
        store.endGroup()
    return ConvertSettings(
        quality=max(0.0, min(1.0, quality)),
        delete_original=delete_original,
        output_directory=normalize_output_mode(output_directory),
        custom_output_path=custom_output_path.strip(),
        concurrent_limit=max(1, concurrent_limit),
    )


def _read(store: QSettings, key: str, default: T, convert: Callable[[object], T]) -> T:
    raw = store.value(key, default)
    try:
        return convert(raw)
    except (TypeError, ValueError):
        logger.warning("配置项 %s 的值无效: %r，使用默认值 %r", key, raw, default)
        return default


def _to_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"true", "1", "yes", "on"}:
        return True
    if text in {"false", "0", "no", "off"}:
        return False
    raise ValueError(value)


def save_settings(settings: ConvertSettings, store: QSettings | None = None) -> None:
    store = store if store is not None else open_settings()
    store.beginGroup(GROUP)
    store.setValue("quality", settings.quality)
    store.setValue("deleteOriginal", settings.delete_original)
    store.setValue("outputDirectory", normalize_output_mode(settings.output_directory))
    store.setValue("customOutputPath", settings.custom_output_path)
    store.setValue("concurrentLimit", settings.concurrent_limit)
    store.endGroup()
    store.sync()
