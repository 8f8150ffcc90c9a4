"""
Handling of uploaded image files.

Files are size-checked and written either to the local upload folder or,
when S3_BUCKET_NAME is configured, to S3. Storing a file is not coupled to
any database write: a stored file may end up with no row referencing it.
"""
import logging
import os
import time

from werkzeug.utils import secure_filename

from . import storage_s3
from .errors import UploadError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}

MAX_IMAGE_BYTES = 2 * 1024 * 1024  # 2MB


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def file_size(file_storage) -> int:
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def single_image(files, field: str = "image", required: bool = True):
    """
    Pick the one uploaded file sent under field.

    Files sent under any other field name are rejected, as is a missing
    file when required is set.
    """
    unexpected = [name for name in files.keys() if name != field]
    if unexpected:
        raise UploadError("Unexpected field in file upload")

    file_storage = files.get(field)
    if file_storage is None or not file_storage.filename:
        if required:
            raise UploadError("No file uploaded.")
        return None
    return file_storage


def check_image(file_storage, max_bytes: int = MAX_IMAGE_BYTES) -> int:
    """Validate extension and size of an uploaded image; return its size."""
    if not allowed_file(file_storage.filename):
        raise UploadError("Invalid image type. Allowed: " + ", ".join(sorted(ALLOWED_EXTENSIONS)) + ".")

    size = file_size(file_storage)
    if size > max_bytes:
        raise UploadError("File too large.")
    return size


def stored_name(original: str) -> str:
    """Timestamp-prefixed, filesystem-safe name for an uploaded file."""
    safe = secure_filename(original) or "upload"
    return f"{int(time.time() * 1000)}-{safe}"


def save_image(file_storage, upload_folder: str, max_bytes: int = MAX_IMAGE_BYTES) -> dict:
    """
    Validate and store an uploaded image.

    Returns the file metadata; "image" is the reference to keep in the
    database (a file name for local storage, a URL for S3).
    """
    size = check_image(file_storage, max_bytes)
    filename = stored_name(file_storage.filename)

    if storage_s3.s3_enabled():
        image = storage_s3.upload_game_image(file_storage, filename)
        path = image
    else:
        os.makedirs(upload_folder, exist_ok=True)
        path = os.path.join(upload_folder, filename)
        file_storage.save(path)
        image = filename

    logger.info("Stored upload %s (%d bytes)", filename, size)
    return {
        "fieldname": file_storage.name,
        "originalname": file_storage.filename,
        "mimetype": file_storage.mimetype,
        "filename": filename,
        "path": path,
        "size": size,
        "image": image,
    }
