"""Local artifact storage."""

from storage.artifacts import put_bytes, put_json, get_bytes, unique_path

__all__ = ["put_bytes", "put_json", "get_bytes", "unique_path"]
