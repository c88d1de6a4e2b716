from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .env import read_env_int
from .epub import parse_epub
from .errors import EpubImportError
from .models import book_to_dict
from .options import options_from_env

MAX_UPLOAD_BYTES_ENV = "FOLIO_MAX_UPLOAD_BYTES"
DEFAULT_MAX_UPLOAD_BYTES = 4 * 1024 * 1024
EPUB_CONTENT_TYPE = "application/epub+zip"

app = FastAPI()
logger = logging.getLogger("folio.web")


def max_upload_bytes() -> int:
    return read_env_int(MAX_UPLOAD_BYTES_ENV, DEFAULT_MAX_UPLOAD_BYTES, minimum=1)


def _is_epub_upload(filename: str, content_type: Optional[str]) -> bool:
    if Path(filename or "").suffix.lower() == ".epub":
        return True
    return (content_type or "").split(";", 1)[0].strip().lower() == EPUB_CONTENT_TYPE


async def _read_limited(upload_file: UploadFile, limit: int, chunk_size: int = 1024 * 1024) -> bytes:
    data = bytearray()
    while True:
        chunk = await upload_file.read(chunk_size)
        if not chunk:
            break
        data.extend(chunk)
        if len(data) > limit:
            raise HTTPException(status_code=413, detail=f"File too large. Maximum size is {limit} bytes.")
    return bytes(data)


@app.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}


@app.post("/import")
async def import_epub(
    file: UploadFile = File(...),
    diagnostics: bool = Query(False),
) -> JSONResponse:
    filename = file.filename or ""
    if not _is_epub_upload(filename, file.content_type):
        raise HTTPException(status_code=400, detail="Invalid file type. Please upload an EPUB file.")

    data = await _read_limited(file, max_upload_bytes())
    if not data:
        raise HTTPException(status_code=400, detail="No EPUB provided.")

    try:
        book = await run_in_threadpool(parse_epub, data, filename, options=options_from_env())
    except EpubImportError as exc:
        logger.warning("import of %r failed: %s", filename, exc)
        return JSONResponse({"error": exc.message, "kind": exc.kind}, status_code=422)

    return JSONResponse(book_to_dict(book, include_diagnostics=diagnostics))
