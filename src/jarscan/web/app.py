"""FastAPI application backing the JarScan web UI."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from jarscan.config import AppConfig
from jarscan.index.search import RecordFilter, Searcher
from jarscan.index.session import ScanSession
from jarscan.index.storage import SQLiteClassStore
from jarscan.ingestion.archive import ArchiveOpenError
from jarscan.models import ClassRecord
from jarscan.web.frontend import router as frontend_router

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="JarScan Web", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(frontend_router)

EMPTY_STATS = {"class_count": 0, "interface_count": 0, "total_lines": 0, "archive_count": 0}

# A flush replaces the stored root, so sessions that write the database run
# one at a time and load the root only once they hold the lock.
_SESSION_LOCK = threading.Lock()


class ScanPayload(BaseModel):
    path: str
    db: Path | None = None
    flush_every: int | None = Field(default=None, ge=1)


class DeleteClassRequest(BaseModel):
    name: str
    package_name: str
    is_interface: bool
    line_count: int


def _resolve_db_path(db: Path | None) -> Path:
    if db is None:
        # Set by `jarscan web --db`
        db = getattr(app.state, "db_path", None)
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _validate_archive_path(raw: str) -> Path:
    clean_path = raw.strip().replace("\r", "").replace("\n", "")
    if not clean_path:
        raise HTTPException(status_code=400, detail="No path provided")
    if "\0" in clean_path:
        raise HTTPException(status_code=400, detail="Invalid path: contains null byte")

    real_path = Path(os.path.realpath(os.path.expanduser(clean_path)))
    if not real_path.exists():
        raise HTTPException(status_code=404, detail="File not found: %s" % clean_path)
    if not real_path.is_file():
        raise HTTPException(status_code=400, detail="Path must be a file: %s" % clean_path)
    return real_path


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/classes")
async def list_classes(
    db: Path | None = None,
    package: str | None = None,
    name: str | None = None,
    interfaces_only: bool = False,
) -> dict[str, Any]:
    """List the stored classes in root order."""
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        return {"classes": [], "stats": dict(EMPTY_STATS)}

    store = SQLiteClassStore(resolved_db)
    try:
        records = Searcher(store).search(
            RecordFilter(package=package, name_contains=name, interfaces_only=interfaces_only)
        )
        stats = store.get_stats()
    finally:
        store.close()

    return {"classes": [record.to_dict() for record in records], "stats": stats}


def _run_scan_job(path: Path, resolved_db: Path, flush_every: int) -> dict[str, Any]:
    with _SESSION_LOCK:
        session = ScanSession(SQLiteClassStore(resolved_db), flush_every=flush_every)
        try:
            stats = session.scan(path)
        finally:
            session.close()

    return {
        "added": stats.added,
        "failed": stats.failed,
        "failed_entries": stats.failed_entries,
        "persistence_failures": stats.persistence_failures,
        "last_persistence_error": stats.last_persistence_error,
    }


def _run_delete_job(record: ClassRecord, resolved_db: Path) -> bool:
    with _SESSION_LOCK:
        session = ScanSession(SQLiteClassStore(resolved_db))
        try:
            return session.remove(record)
        finally:
            session.close()


def _run_clear_job(resolved_db: Path) -> int:
    with _SESSION_LOCK:
        session = ScanSession(SQLiteClassStore(resolved_db))
        try:
            return session.clear()
        finally:
            session.close()


@app.post("/scan")
async def scan_archive(payload: ScanPayload) -> dict[str, Any]:
    archive_path = _validate_archive_path(payload.path)
    flush_every = payload.flush_every or AppConfig().flush_every

    resolved_db = _resolve_db_path(payload.db)
    _ensure_db_parent(resolved_db)

    LOGGER.info("Processing file %s", archive_path.name)
    try:
        stats = await asyncio.to_thread(_run_scan_job, archive_path, resolved_db, flush_every)
    except ArchiveOpenError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        LOGGER.exception("Scan failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {"status": "ok", "db": str(resolved_db), "stats": stats}


@app.post("/classes/delete")
async def delete_class(payload: DeleteClassRequest, db: Path | None = None) -> dict[str, Any]:
    """Delete one record, matched by value."""
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(status_code=404, detail="Database not found")

    try:
        record = ClassRecord(
            name=payload.name,
            package_name=payload.package_name,
            is_interface=payload.is_interface,
            line_count=payload.line_count,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    removed = await asyncio.to_thread(_run_delete_job, record, resolved_db)
    if not removed:
        raise HTTPException(status_code=404, detail=f"Class {payload.name} not found")
    return {"status": "ok"}


@app.delete("/classes")
async def clear_classes(db: Path | None = None) -> dict[str, Any]:
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(status_code=404, detail="Database not found")

    removed = await asyncio.to_thread(_run_clear_job, resolved_db)
    return {"status": "ok", "removed_count": removed}
