# -*- coding: utf-8 -*-
"""
Blob store for fumigation evidence images and exported reports.

Buckets are sub-directories of ``UPLOAD_FOLDER``; objects are addressed by
a relative path inside their bucket.
"""

from __future__ import annotations

import logging
import os
import posixpath
from typing import Iterable

from flask import current_app, url_for

from modules.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

FUMIGATION_IMAGES = "fumigation-images"
REPORTS = "reports"
TEMP = "temp"
BUCKETS = (FUMIGATION_IMAGES, REPORTS, TEMP)


class BlobStore:
    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    # ── paths ──────────────────────────────────────────────────────────────
    def _bucket_dir(self, bucket: str) -> str:
        if bucket not in BUCKETS:
            raise ValidationError(f"Bucket desconocido: {bucket!r}.")
        return os.path.join(self.root, bucket)

    def _resolve(self, bucket: str, path: str) -> str:
        clean = posixpath.normpath((path or "").replace("\\", "/")).lstrip("/")
        if not clean or clean == "." or clean.startswith(".."):
            raise ValidationError(f"Ruta de archivo inválida: {path!r}.")
        base = self._bucket_dir(bucket)
        full = os.path.abspath(os.path.join(base, *clean.split("/")))
        if not full.startswith(base + os.sep):
            raise ValidationError(f"Ruta de archivo inválida: {path!r}.")
        return full

    # ── operations ─────────────────────────────────────────────────────────
    def ensure_buckets(self) -> None:
        for bucket in BUCKETS:
            os.makedirs(self._bucket_dir(bucket), exist_ok=True)

    def upload(self, bucket: str, path: str, data: bytes) -> str:
        full = self._resolve(bucket, path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as fh:
            fh.write(data)
        logger.info("Stored %s/%s (%d bytes)", bucket, path, len(data))
        return path

    def download(self, bucket: str, path: str) -> bytes:
        full = self._resolve(bucket, path)
        if not os.path.isfile(full):
            raise NotFoundError(f"Archivo no encontrado: {bucket}/{path}.")
        with open(full, "rb") as fh:
            return fh.read()

    def exists(self, bucket: str, path: str) -> bool:
        return os.path.isfile(self._resolve(bucket, path))

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        for path in paths:
            full = self._resolve(bucket, path)
            if os.path.isfile(full):
                os.remove(full)
                logger.info("Removed %s/%s", bucket, path)

    def get_public_url(self, bucket: str, path: str) -> str:
        self._resolve(bucket, path)
        return url_for("files.serve", bucket=bucket, path=path)

    def local_path(self, bucket: str, path: str) -> str:
        return self._resolve(bucket, path)


def get_blob_store() -> BlobStore:
    """Store rooted at the current app's UPLOAD_FOLDER."""
    return BlobStore(current_app.config["UPLOAD_FOLDER"])
