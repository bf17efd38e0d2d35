from __future__ import annotations

import os
import uuid

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from rfx.errors import PreconditionFailed

PROOF_URL_PREFIX = "/api/uploads/proofs"


def upload_dir() -> str:
    path = current_app.config["UPLOAD_DIR"]
    os.makedirs(path, exist_ok=True)
    return path


def _is_allowed(filename: str) -> bool:
    if not filename or "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[-1].lower()
    return ext in current_app.config.get("ALLOWED_PROOF_EXTENSIONS", {"jpg", "jpeg", "png", "gif"})


def save_proof(file: FileStorage | None, user_id: int) -> tuple[str, str]:
    """Store an uploaded proof image. Returns (public url, path on disk)."""
    if file is None or not file.filename:
        raise PreconditionFailed("Proof file is required", code="MISSING_PROOF_FILE")
    original = secure_filename(os.path.basename(file.filename))
    if not _is_allowed(original):
        raise PreconditionFailed("Only image files (JPEG, JPG, PNG, GIF) are allowed", code="INVALID_PROOF_FILE")

    safe_name = f"{int(user_id)}_{uuid.uuid4().hex[:12]}_{original}"
    save_path = os.path.join(upload_dir(), safe_name)
    file.save(save_path)
    return f"{PROOF_URL_PREFIX}/{safe_name}", save_path


def discard_proof(path: str | None) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
