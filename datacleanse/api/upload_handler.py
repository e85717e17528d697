"""
Handle spreadsheet uploads for the web app.
"""
import os
import time
import uuid
from pathlib import Path
from typing import List, Tuple
from werkzeug.utils import secure_filename
from flask import Request
import logging

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'xlsx', 'xls', 'csv'}

def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed"""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS

def save_uploaded_file(request: Request, upload_folder: Path) -> Tuple[str, str]:
    """
    Save the single uploaded spreadsheet to disk under a unique name.

    Accepts the file under either the 'file' or 'files' form field.

    Returns:
        Tuple of (saved_file_path, original_filename)
    """
    files = request.files.getlist('file') or request.files.getlist('files')

    if not files:
        raise ValueError("No file in request")
    if len(files) > 1:
        raise ValueError("Only one spreadsheet can be processed at a time")

    file = files[0]
    if not file or file.filename == '':
        raise ValueError("No file selected")
    if not allowed_file(file.filename):
        raise ValueError(f"Invalid file: {file.filename}")

    original_name = secure_filename(file.filename)
    if not allowed_file(original_name):
        raise ValueError(f"Invalid file name: {file.filename}")
    file_ext = original_name.rsplit('.', 1)[1].lower()
    unique_name = f"{uuid.uuid4()}.{file_ext}"

    upload_folder = Path(upload_folder)
    upload_folder.mkdir(parents=True, exist_ok=True)
    file_path = upload_folder / unique_name
    file.save(str(file_path))

    logger.info(f"Saved uploaded file: {original_name} -> {file_path}")
    return str(file_path), original_name

def expired_files(folder: Path, retention_days: int) -> List[str]:
    """Files in folder older than the retention period"""
    folder = Path(folder)
    if not folder.exists():
        return []
    cutoff = time.time() - retention_days * 24 * 60 * 60
    return [str(path) for path in folder.iterdir() if path.is_file() and path.stat().st_mtime < cutoff]

def cleanup_files(file_paths: List[str]):
    """Delete stored files"""
    for path in file_paths:
        try:
            os.remove(path)
            logger.info(f"Deleted file: {path}")
        except OSError as e:
            logger.warning(f"Could not delete file {path}: {e}")
