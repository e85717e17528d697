"""
Configuration settings for the DataCleanse backend.
"""
import os
from pathlib import Path

# Base directories
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.environ.get("DATACLEANSE_DATA_DIR", str(BASE_DIR / "data")))

# Database (jobs, processing history and the phone history ledger)
DATABASE_PATH = Path(os.environ.get("DATACLEANSE_DATABASE_PATH", str(DATA_DIR / "app.db")))

# File storage
UPLOAD_FOLDER = DATA_DIR / "uploads"
RESULTS_FOLDER = DATA_DIR / "results"

# File retention (days)
FILE_RETENTION_DAYS = 7

# Flask settings
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
DEBUG = os.environ.get("FLASK_DEBUG", "False").lower() == "true"

# CORS settings
CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173"]  # React dev servers

# Max file size (50MB)
MAX_CONTENT_LENGTH = 50 * 1024 * 1024

LOG_LEVEL = os.environ.get("DATACLEANSE_LOG_LEVEL", "INFO").upper()

# Phone number extraction
MIN_DIGITS = int(os.environ.get("DATACLEANSE_MIN_DIGITS", "7"))
MAX_DIGITS = int(os.environ.get("DATACLEANSE_MAX_DIGITS", "15"))
SEPARATORS = " -.()+/"
COUNTRY_CODE = os.environ.get("DATACLEANSE_COUNTRY_CODE", "1")
NATIONAL_NUMBER_LENGTH = int(os.environ.get("DATACLEANSE_NATIONAL_LENGTH", "10"))

# Rule 2: a number is rejected once its history count reaches base x multiplier
HISTORY_BASE = int(os.environ.get("DATACLEANSE_HISTORY_BASE", "2"))
HISTORY_MULTIPLIER = int(os.environ.get("DATACLEANSE_HISTORY_MULTIPLIER", "2"))
HISTORY_THRESHOLD = HISTORY_BASE * HISTORY_MULTIPLIER

# Output workbook
REMOVAL_MODE = os.environ.get("DATACLEANSE_REMOVAL_MODE", "row")
INCLUDE_SUMMARY_SHEET = os.environ.get("DATACLEANSE_SUMMARY_SHEET", "False").lower() == "true"

# Narrative report generation
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY")
REPORT_MODEL = os.environ.get("DATACLEANSE_REPORT_MODEL", "claude-3-haiku-20240307")
REPORT_MAX_TOKENS = int(os.environ.get("DATACLEANSE_REPORT_MAX_TOKENS", "1024"))
REPORT_TIMEOUT = float(os.environ.get("DATACLEANSE_REPORT_TIMEOUT", "30"))
REPORT_MAX_RETRIES = int(os.environ.get("DATACLEANSE_REPORT_MAX_RETRIES", "2"))


def ensure_storage_dirs(*folders: Path) -> None:
    """Create upload/result folders if they don't exist"""
    for folder in folders or (UPLOAD_FOLDER, RESULTS_FOLDER):
        Path(folder).mkdir(parents=True, exist_ok=True)
