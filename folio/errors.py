from __future__ import annotations


class EpubImportError(ValueError):
    """Fatal import failure. ``kind`` tags the failure for callers."""

    kind = "import-error"
    default_message = "EPUB import failed"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidArchive(EpubImportError):
    kind = "invalid-archive"
    default_message = "Invalid EPUB: not a ZIP archive."


class MissingContainer(EpubImportError):
    kind = "missing-container"
    default_message = "Invalid EPUB: missing container."


class MissingPackagePath(EpubImportError):
    kind = "missing-package-path"
    default_message = "Invalid EPUB: missing manifest path."


class MissingPackageDocument(EpubImportError):
    kind = "missing-package-document"
    default_message = "Invalid EPUB: missing package definition."


class NoReadableChapters(EpubImportError):
    kind = "no-readable-chapters"
    default_message = "No readable chapters found."
