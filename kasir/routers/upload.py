import logging
import os
import time
import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from kasir.responses import ok
from kasir.security import require_auth

logger = logging.getLogger("kasir.upload")

# served back by the StaticFiles mount in kasir.main
UPLOAD_ROOT = os.getenv("UPLOAD_ROOT", "uploads")
UPLOAD_URL_PREFIX = "/uploads"
PRODUCT_SUBDIR = "products"

try:
    UPLOAD_MAX_MB = int(os.getenv("UPLOAD_MAX_MB", "5"))
except ValueError:
    UPLOAD_MAX_MB = 5

MIME_TO_EXT = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}

router = APIRouter(prefix="/upload", tags=["upload"], dependencies=[Depends(require_auth)])


class UploadDelete(BaseModel):
    filename: str


def detect_image_type(head: bytes) -> Optional[str]:
    """MIME type from magic bytes, or None when not one of the accepted formats."""
    if head.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if head[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return None


def product_upload_dir() -> str:
    return os.path.join(UPLOAD_ROOT, PRODUCT_SUBDIR)


def _extension(filename: Optional[str], mime_type: str) -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    return ext if ext in ALLOWED_EXTENSIONS else MIME_TO_EXT[mime_type]


@router.post("/")
def upload_image(request: Request, image: Optional[UploadFile] = File(None)):
    if image is None:
        raise HTTPException(status_code=400, detail="Tidak ada file yang diupload")
    raw = image.file.read() or b""
    if not raw:
        raise HTTPException(status_code=400, detail="Tidak ada file yang diupload")

    mime_type = detect_image_type(raw[:16])
    if mime_type is None:
        raise HTTPException(status_code=400, detail="Tipe file tidak didukung. Gunakan JPG, PNG, GIF, atau WebP")
    if len(raw) > UPLOAD_MAX_MB * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"Ukuran file maksimal {UPLOAD_MAX_MB}MB")

    filename = f"product_{uuid.uuid4().hex[:13]}_{int(time.time())}.{_extension(image.filename, mime_type)}"
    target_dir = product_upload_dir()
    try:
        os.makedirs(target_dir, exist_ok=True)
        with open(os.path.join(target_dir, filename), "wb") as fh:
            fh.write(raw)
    except OSError:
        logger.exception("could not store upload %s", filename)
        raise HTTPException(status_code=500, detail="Gagal menyimpan file")

    relative_path = f"{UPLOAD_URL_PREFIX}/{PRODUCT_SUBDIR}/{filename}"
    logger.info("stored upload %s (%d bytes, %s)", filename, len(raw), mime_type)
    return ok(
        {
            "filename": filename,
            "path": relative_path,
            "url": str(request.base_url).rstrip("/") + relative_path,
            "size": len(raw),
            "type": mime_type,
        },
        "File berhasil diupload",
    )


@router.delete("/")
def delete_image(payload: UploadDelete = Body(...)):
    # basename only, no traversal out of the upload directory
    filename = os.path.basename(payload.filename.strip())
    path = os.path.join(product_upload_dir(), filename)
    if not filename or not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="File tidak ditemukan")
    try:
        os.remove(path)
    except OSError:
        logger.exception("could not delete upload %s", filename)
        raise HTTPException(status_code=500, detail="Gagal menghapus file")
    logger.info("deleted upload %s", filename)
    return ok(message="File berhasil dihapus")
