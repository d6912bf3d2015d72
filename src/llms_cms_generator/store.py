"""
Hash-addressed artifact store.

Generated documents are written to a blob backend under their SHA1; a small
sqlite table maps ``(filename, site_name, dimension_hash)`` to that SHA1 so a
request can find the current blob without regenerating.
"""
from __future__ import annotations

import hashlib
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Union

from .logger import get_logger

logger = get_logger(__name__)

ARTIFACT_INDEX = "llms.txt"
ARTIFACT_FULL = "llms-full.txt"
ARTIFACTS = (ARTIFACT_INDEX, ARTIFACT_FULL)

ALL_DIMENSIONS = "all"
MEDIA_TYPE = "text/plain"

_CREATE_HASH_TABLE = """
CREATE TABLE IF NOT EXISTS llm_file_hashes (
    filename       TEXT NOT NULL,
    site_name      TEXT NOT NULL,
    dimension_hash TEXT NOT NULL,
    sha1           TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL,
    PRIMARY KEY (filename, site_name, dimension_hash)
)
"""

_CREATE_SITE_INDEX = "CREATE INDEX IF NOT EXISTS idx_llm_file_hashes_site ON llm_file_hashes(site_name)"

_COLUMNS = "filename, site_name, dimension_hash, sha1, created_at, updated_at"

DimensionSelector = Mapping[str, Any]


class StorageError(RuntimeError):
    """Writing to the hash table or the blob backend failed."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def dimension_hash(dimensions: Optional[DimensionSelector]) -> str:
    """
    ``"all"`` for consolidated artifacts (empty selector or ``{"all": True}``),
    otherwise the MD5 of ``name-value-value...`` over the selector sorted by
    dimension name.
    """
    if not dimensions or dimensions.get(ALL_DIMENSIONS) is True:
        return ALL_DIMENSIONS
    parts: List[str] = []
    for name in sorted(dimensions):
        if name == ALL_DIMENSIONS:
            continue
        values = dimensions[name]
        if isinstance(values, str):
            values = [values]
        parts.append("-".join([str(name), *[str(v) for v in values]]))
    if not parts:
        return ALL_DIMENSIONS
    return hashlib.md5("".join(parts).encode("utf-8")).hexdigest()


def content_hash(content: Union[str, bytes]) -> str:
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha1(data).hexdigest()


def blob_name(site_name: str, dim_hash: str, filename: str) -> str:
    return f"{site_name}-{dim_hash}-{filename}"


class BlobBackend(Protocol):
    def write(self, data: bytes, filename: str, media_type: str = MEDIA_TYPE) -> str:
        """Store ``data`` and return its SHA1."""

    def read(self, sha1: str) -> Optional[bytes]:
        """Return the blob, or ``None`` when it is missing."""

    def exists(self, sha1: str) -> bool:
        ...

    def delete(self, sha1: str) -> bool:
        ...


class MemoryBlobBackend:
    def __init__(self) -> None:
        self.blobs: Dict[str, bytes] = {}
        self.metadata: Dict[str, Dict[str, Any]] = {}

    def write(self, data: bytes, filename: str, media_type: str = MEDIA_TYPE) -> str:
        sha1 = content_hash(data)
        self.blobs[sha1] = data
        self.metadata[sha1] = {"filename": filename, "media_type": media_type}
        return sha1

    def read(self, sha1: str) -> Optional[bytes]:
        return self.blobs.get(sha1)

    def exists(self, sha1: str) -> bool:
        return sha1 in self.blobs

    def delete(self, sha1: str) -> bool:
        self.metadata.pop(sha1, None)
        return self.blobs.pop(sha1, None) is not None


class FileBlobBackend:
    """One file per SHA1 plus a ``<sha1>.json`` sidecar with filename and media type."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _blob_path(self, sha1: str) -> Path:
        return self.directory / sha1

    def _meta_path(self, sha1: str) -> Path:
        return self.directory / f"{sha1}.json"

    def write(self, data: bytes, filename: str, media_type: str = MEDIA_TYPE) -> str:
        sha1 = content_hash(data)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            target = self._blob_path(sha1)
            if not target.exists():
                tmp = target.with_suffix(".tmp")
                tmp.write_bytes(data)
                tmp.replace(target)
            meta = {
                "filename": filename,
                "media_type": media_type,
                "size": len(data),
                "stored_at": _now(),
            }
            self._meta_path(sha1).write_text(json.dumps(meta, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write blob {filename} to {self.directory}: {e}") from e
        return sha1

    def read(self, sha1: str) -> Optional[bytes]:
        path = self._blob_path(sha1)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Failed to read blob {sha1}: {e}")
            return None

    def exists(self, sha1: str) -> bool:
        return self._blob_path(sha1).is_file()

    def delete(self, sha1: str) -> bool:
        existed = self.exists(sha1)
        self._blob_path(sha1).unlink(missing_ok=True)
        self._meta_path(sha1).unlink(missing_ok=True)
        return existed

    def metadata(self, sha1: str) -> Optional[Dict[str, Any]]:
        path = self._meta_path(sha1)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))


class HashRepository:
    """sqlite table ``llm_file_hashes``; one row per (filename, site, dimension hash)."""

    def __init__(self, database: Union[str, Path] = ":memory:") -> None:
        self.database = str(database)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if self.database != ":memory:":
                Path(self.database).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.database, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute(_CREATE_HASH_TABLE)
            conn.execute(_CREATE_SITE_INDEX)
            conn.commit()
            self._conn = conn
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        # one shared connection; callers from any thread are serialised here
        with self._lock:
            try:
                conn = self._connection()
            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Cannot open hash database {self.database}: {e}") from e
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                try:
                    conn.rollback()
                except sqlite3.Error as rollback_error:
                    logger.warning(f"Rollback failed on {self.database}: {rollback_error}")
                raise StorageError(f"Hash database error: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def store_hash(self, filename: str, site_name: str, dim_hash: str, sha1: str) -> None:
        now = _now()
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE llm_file_hashes SET sha1 = ?, updated_at = ? "
                "WHERE filename = ? AND site_name = ? AND dimension_hash = ?",
                (sha1, now, filename, site_name, dim_hash),
            )
            if cur.rowcount == 0:
                conn.execute(
                    f"INSERT INTO llm_file_hashes ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    (filename, site_name, dim_hash, sha1, now, now),
                )

    def get_hash(self, filename: str, site_name: str, dim_hash: str) -> Optional[str]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT sha1 FROM llm_file_hashes "
                "WHERE filename = ? AND site_name = ? AND dimension_hash = ?",
                (filename, site_name, dim_hash),
            ).fetchone()
        return row["sha1"] if row else None

    def delete(self, filename: str, site_name: str, dim_hash: str) -> int:
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM llm_file_hashes "
                "WHERE filename = ? AND site_name = ? AND dimension_hash = ?",
                (filename, site_name, dim_hash),
            )
        return cur.rowcount

    def delete_site(self, site_name: str) -> int:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM llm_file_hashes WHERE site_name = ?", (site_name,))
        return cur.rowcount

    def delete_all(self) -> int:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM llm_file_hashes")
        return cur.rowcount

    def all(self) -> List[Dict[str, Any]]:
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM llm_file_hashes ORDER BY site_name, filename, dimension_hash"
            ).fetchall()
        return [dict(r) for r in rows]


class ArtifactStore:
    """
    Stores generated artifacts by content hash and keeps the
    ``(filename, site, dimension hash) -> sha1`` mapping current.
    """

    def __init__(self, repository: HashRepository, backend: BlobBackend) -> None:
        self.repository = repository
        self.backend = backend

    def store(
        self,
        filename: str,
        content: str,
        site_name: str,
        dimensions: Optional[DimensionSelector] = None,
        *,
        dim_hash: Optional[str] = None,
    ) -> str:
        dim_hash = dim_hash or dimension_hash(dimensions)
        name = blob_name(site_name, dim_hash, filename)
        logger.debug(f"Storing {name} ({len(content)} chars)")
        try:
            sha1 = self.backend.write(content.encode("utf-8"), name, MEDIA_TYPE)
        except StorageError:
            raise
        except Exception as e:  # noqa: BLE001
            raise StorageError(f"Failed to store {name}: {e}") from e
        self.repository.store_hash(filename, site_name, dim_hash, sha1)
        logger.info(f"Stored {name} sha1={sha1}")
        return sha1

    def get_hash(
        self, filename: str, site_name: str, dimensions: Optional[DimensionSelector] = None
    ) -> Optional[str]:
        return self.repository.get_hash(filename, site_name, dimension_hash(dimensions))

    def fetch(
        self, filename: str, site_name: str, dimensions: Optional[DimensionSelector] = None
    ) -> Optional[str]:
        dim_hash = dimension_hash(dimensions)
        sha1 = self.repository.get_hash(filename, site_name, dim_hash)
        if not sha1:
            logger.debug(f"No hash recorded for {blob_name(site_name, dim_hash, filename)}")
            return None
        data = self.backend.read(sha1)
        if data is None:
            logger.warning(
                f"Blob {sha1} for {blob_name(site_name, dim_hash, filename)} is missing; "
                "treating as cache miss"
            )
            return None
        return data.decode("utf-8")

    def delete(
        self, filename: str, site_name: str, dimensions: Optional[DimensionSelector] = None
    ) -> bool:
        return self.repository.delete(filename, site_name, dimension_hash(dimensions)) > 0

    def clear_all(self) -> int:
        records = self.repository.all()
        for record in records:
            sha1 = record["sha1"]
            try:
                self.backend.delete(sha1)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Failed to delete blob {sha1} ({record['filename']}): {e}")
        count = self.repository.delete_all()
        logger.info(f"Cleared {count} hash record(s)")
        return count

    def invalidate_site(self, site_name: str) -> int:
        count = self.repository.delete_site(site_name)
        logger.info(f"Invalidated {count} hash record(s) for site {site_name}")
        return count

    def all_records(self) -> List[Dict[str, Any]]:
        return self.repository.all()

    def resource_status(self, record: Mapping[str, Any]) -> str:
        return "OK" if self.backend.exists(record["sha1"]) else "MISSING"

    def statistics(self) -> Dict[str, Any]:
        records = self.repository.all()
        by_site: Dict[str, int] = {}
        by_file: Dict[str, int] = {}
        last_updated: Optional[str] = None
        for record in records:
            by_site[record["site_name"]] = by_site.get(record["site_name"], 0) + 1
            by_file[record["filename"]] = by_file.get(record["filename"], 0) + 1
            if last_updated is None or record["updated_at"] > last_updated:
                last_updated = record["updated_at"]
        return {
            "total": len(records),
            "by_site": by_site,
            "by_file": by_file,
            "last_updated": last_updated,
        }

    def close(self) -> None:
        self.repository.close()


def create_store(
    database: Union[str, Path],
    backend: str = "file",
    blob_dir: Union[str, Path] = ".llms-blobs",
) -> ArtifactStore:
    if backend == "memory":
        blobs: BlobBackend = MemoryBlobBackend()
    elif backend == "file":
        blobs = FileBlobBackend(blob_dir)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")
    return ArtifactStore(HashRepository(database), blobs)
