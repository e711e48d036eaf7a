from __future__ import annotations

from pathlib import Path


class ConversionError(Exception):
    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path
        self.message = message


class ScanError(ConversionError):
    pass


class StatError(ConversionError):
    pass


class CodecError(ConversionError):
    pass


class WriteError(ConversionError):
    pass


class DeleteError(ConversionError):
    pass
