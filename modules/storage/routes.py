from flask import Blueprint, send_file

from modules.errors import NotFoundError
from .blobs import get_blob_store

files_bp = Blueprint("files", __name__, url_prefix="/files")


@files_bp.get("/<bucket>/<path:path>", endpoint="serve")
def serve(bucket, path):
    store = get_blob_store()
    if not store.exists(bucket, path):
        raise NotFoundError(f"Archivo no encontrado: {bucket}/{path}.")
    return send_file(store.local_path(bucket, path))
