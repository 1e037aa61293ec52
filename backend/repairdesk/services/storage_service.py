# Overview: Blob storage for ticket images (local upload folder).

from __future__ import annotations

import os

from flask import current_app


class StorageError(ValueError):
    pass


def _resolve(file_path: str) -> str:
    """
    Map a stored file_path to an absolute path inside UPLOAD_FOLDER.

    Paths escaping the upload folder are rejected.
    """
    root = os.path.abspath(current_app.config.get("UPLOAD_FOLDER", "uploads"))
    full = os.path.abspath(os.path.join(root, file_path.lstrip("/\\")))
    if os.path.commonpath([root, full]) != root:
        raise StorageError(f"Path outside upload folder: {file_path}")
    return full


def delete_blob(file_path: str | None) -> bool:
    """
    Delete a stored image file.

    Returns True if a file was removed. A missing file or an OS error is
    logged and reported as False; callers deleting tickets continue.
    """
    if not file_path:
        return False

    try:
        full = _resolve(file_path)
    except StorageError as e:
        current_app.logger.warning("Refusing to delete blob: %s", e)
        return False

    if not os.path.exists(full):
        current_app.logger.info("Blob already absent: %s", file_path)
        return False

    try:
        os.remove(full)
    except OSError:
        current_app.logger.exception("Failed to delete blob %s", file_path)
        return False
    return True
