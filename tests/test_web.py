import asyncio
import io
import json
import os
import unittest
from unittest.mock import patch

from fastapi import HTTPException
from starlette.datastructures import Headers, UploadFile

from epub_builder import LONG_TEXT, PNG_BYTES, build_epub, xhtml

from folio.web import app, healthz, import_epub


def _upload(payload: bytes, filename: str = "book.epub", content_type: str = "") -> UploadFile:
    headers = Headers({"content-type": content_type}) if content_type else None
    return UploadFile(file=io.BytesIO(payload), filename=filename, headers=headers)


def _book() -> bytes:
    return build_epub(
        {
            "one.xhtml": xhtml(f"<h1>One</h1><p>{LONG_TEXT}</p>"),
            "two.xhtml": xhtml(f"<h1>Two</h1><p>{LONG_TEXT}</p><img src=\"gone.png\"/>"),
        },
        manifest=[
            ("c1", "one.xhtml", "application/xhtml+xml"),
            ("c2", "two.xhtml", "application/xhtml+xml"),
            ("cover", "cover.png", "image/png", "cover-image"),
        ],
        resources={"cover.png": PNG_BYTES},
    )


class WebRoutesTests(unittest.TestCase):
    def test_routes_registered(self) -> None:
        seen: set[tuple[str, str]] = set()
        for route in app.routes:
            path = getattr(route, "path", None)
            methods = getattr(route, "methods", None) or set()
            for method in methods:
                if path in {"/import", "/healthz"}:
                    seen.add((method, path))
        self.assertIn(("POST", "/import"), seen)
        self.assertIn(("GET", "/healthz"), seen)

    def test_healthz(self) -> None:
        self.assertEqual(asyncio.run(healthz()), {"status": "ok"})


class ImportEndpointTests(unittest.TestCase):
    def test_import_returns_book(self) -> None:
        response = asyncio.run(import_epub(file=_upload(_book()), diagnostics=False))
        self.assertEqual(response.status_code, 200)
        payload = json.loads(response.body)
        self.assertEqual(payload["title"], "Sample Book")
        self.assertEqual(payload["author"], "Jane Doe")
        self.assertTrue(payload["coverImage"].startswith("data:image/png;base64,"))
        self.assertEqual([chapter["title"] for chapter in payload["chapters"]], ["One", "Two"])
        self.assertEqual([chapter["position"] for chapter in payload["chapters"]], [0, 1])
        self.assertNotIn("diagnostics", payload)

    def test_import_can_include_diagnostics(self) -> None:
        response = asyncio.run(import_epub(file=_upload(_book()), diagnostics=True))
        payload = json.loads(response.body)
        self.assertEqual(
            payload["diagnostics"],
            [{"chapterIndex": 1, "kind": "resource-resolution-miss", "detail": "gone.png"}],
        )

    def test_content_type_is_accepted_without_suffix(self) -> None:
        upload = _upload(_book(), filename="upload", content_type="application/epub+zip")
        response = asyncio.run(import_epub(file=upload, diagnostics=False))
        self.assertEqual(response.status_code, 200)

    def test_rejects_other_file_types(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            asyncio.run(import_epub(file=_upload(b"hello", filename="notes.txt"), diagnostics=False))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.detail, "Invalid file type. Please upload an EPUB file.")

    def test_rejects_empty_upload(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            asyncio.run(import_epub(file=_upload(b""), diagnostics=False))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.detail, "No EPUB provided.")

    def test_rejects_oversized_upload(self) -> None:
        with patch.dict(os.environ, {"FOLIO_MAX_UPLOAD_BYTES": "64"}):
            with self.assertRaises(HTTPException) as ctx:
                asyncio.run(import_epub(file=_upload(_book()), diagnostics=False))
        self.assertEqual(ctx.exception.status_code, 413)
        self.assertIn("64 bytes", ctx.exception.detail)

    def test_invalid_archive_is_unprocessable(self) -> None:
        response = asyncio.run(import_epub(file=_upload(b"not a zip"), diagnostics=False))
        self.assertEqual(response.status_code, 422)
        payload = json.loads(response.body)
        self.assertEqual(payload["kind"], "invalid-archive")
        self.assertTrue(payload["error"].startswith("Invalid EPUB"))

    def test_unreadable_book_is_unprocessable(self) -> None:
        data = build_epub({"toc.xhtml": xhtml("<h1>Contents</h1>")})
        response = asyncio.run(import_epub(file=_upload(data), diagnostics=False))
        self.assertEqual(response.status_code, 422)
        self.assertEqual(json.loads(response.body)["kind"], "no-readable-chapters")


if __name__ == "__main__":
    unittest.main()
