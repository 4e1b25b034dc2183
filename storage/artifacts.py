"""Local artifact storage for downloaded PDFs and extraction results.

Every write returns a DataReference carrying the file's SHA256 so a later
read can verify the bytes have not changed.
"""

import hashlib
import json
from datetime import datetime
from pathlib import Path
from typing import Any

from core.models import DataReference


def _compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def put_bytes(data: bytes, path: Path, content_type: str = "application/pdf", ensure_parent: bool = True) -> DataReference:
    """Write raw bytes (a mail attachment) and return a DataReference.

    Args:
        data: File content
        path: Destination file path
        content_type: MIME type recorded on the reference
        ensure_parent: Create parent directories if they don't exist
    """
    if ensure_parent:
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)

    return DataReference(
        storage_uri=str(path.absolute()),
        content_hash=_compute_sha256(data),
        content_type=content_type,
        size_bytes=len(data),
        stored_at=datetime.utcnow(),
    )


def put_json(obj: Any, path: Path, ensure_parent: bool = True) -> DataReference:
    """Store a JSON-serializable object (dict or pydantic model).

    Non-ASCII text (menu names, store names) is written as-is.
    """
    if hasattr(obj, "model_dump"):
        obj = obj.model_dump(mode="json", by_alias=True)
    json_bytes = json.dumps(obj, indent=2, ensure_ascii=False).encode("utf-8")
    ref = put_bytes(json_bytes, path, content_type="application/json", ensure_parent=ensure_parent)
    return ref


def get_bytes(ref: DataReference, validate_hash: bool = True) -> bytes:
    """Read an artifact back.

    Raises:
        FileNotFoundError: If artifact path doesn't exist
        ValueError: If hash validation fails
    """
    path = Path(ref.storage_uri)
    if not path.exists():
        raise FileNotFoundError(f"Artifact not found: {ref.storage_uri}")

    data = path.read_bytes()
    if validate_hash:
        actual_hash = _compute_sha256(data)
        if actual_hash != ref.content_hash:
            raise ValueError(
                f"Hash mismatch for {ref.storage_uri}: "
                f"expected {ref.content_hash}, got {actual_hash}"
            )
    return data


def unique_path(directory: Path, file_name: str) -> Path:
    """directory/file_name, or file_name with a _N suffix when that exists."""
    candidate = directory / file_name
    stem, suffix = candidate.stem, candidate.suffix
    n = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{n}{suffix}"
        n += 1
    return candidate
