"""
Database models and operations for the DataCleanse web app.
Uses SQLite for jobs, upload metadata, processing history and the phone history ledger.
"""
import sqlite3
import json
import uuid
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Any
import logging

logger = logging.getLogger(__name__)

class Database:
    """SQLite database wrapper for jobs, results, uploads and phone history"""

    def __init__(self, db_path: str = "data/app.db", timeout: float = 20.0):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file
            timeout: Connection timeout in seconds (default: 20.0)
        """
        self.db_path = Path(db_path)
        self.timeout = timeout

        # Ensure data directory exists and is writable
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        if not self._verify_database_path():
            raise RuntimeError(f"Cannot access database path: {self.db_path}")

        self.init_database()

    def _verify_database_path(self) -> bool:
        """Verify database path is accessible and writable"""
        test_file = self.db_path.parent / f".test_write_{uuid.uuid4().hex}"
        try:
            test_file.touch()
            test_file.unlink()
            return True
        except (OSError, PermissionError) as e:
            logger.error(f"Database path not writable: {e}")
            return False

    @contextmanager
    def get_connection(self):
        """
        Get database connection with proper configuration.
        Commits on success, rolls back on any error, always closes.

        Enables:
        - WAL mode for better concurrency
        - Foreign key constraints for data integrity
        - Timeout to prevent indefinite hangs
        """
        conn = None
        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.timeout
            )
            conn.row_factory = sqlite3.Row

            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute(f"PRAGMA busy_timeout={int(self.timeout * 1000)}")

            yield conn
            conn.commit()
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error(f"Unexpected database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    def _execute_with_retry(self, operation, max_retries: int = 3, initial_delay: float = 0.1):
        """
        Execute database operation with retry logic for transient errors.

        Args:
            operation: Callable that performs the database operation
            max_retries: Maximum number of retry attempts
            initial_delay: Initial delay between retries in seconds

        Returns:
            Result of the operation
        """
        last_exception = None

        for attempt in range(max_retries):
            try:
                return operation()
            except sqlite3.OperationalError as e:
                error_msg = str(e).lower()
                # Retry on database locked or busy errors
                if "locked" in error_msg or "busy" in error_msg:
                    if attempt < max_retries - 1:
                        delay = initial_delay * (2 ** attempt)  # Exponential backoff
                        logger.warning(f"Database locked, retrying in {delay}s (attempt {attempt + 1}/{max_retries})")
                        time.sleep(delay)
                        last_exception = e
                        continue
                raise

        if last_exception:
            raise last_exception

    def init_database(self):
        """Initialize database schema"""
        def _init_schema(conn):
            cursor = conn.cursor()

            # Jobs table; status holds the run state value
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    status TEXT NOT NULL,
                    status_message TEXT,
                    output_filename TEXT,
                    download_name TEXT,
                    settings TEXT,
                    input_file TEXT,
                    error TEXT
                )
            """)

            # Per-job statistics and narrative report
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS job_results (
                    job_id TEXT PRIMARY KEY,
                    stats TEXT,
                    report TEXT,
                    report_error TEXT,
                    FOREIGN KEY (job_id) REFERENCES jobs(id) ON DELETE CASCADE
                )
            """)

            # Uploaded files table - stores file metadata for reuse
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS uploaded_files (
                    id TEXT PRIMARY KEY,
                    original_name TEXT NOT NULL,
                    stored_path TEXT NOT NULL,
                    file_size INTEGER,
                    uploaded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    last_used_at TIMESTAMP,
                    validation_result TEXT
                )
            """)

            # One row per completed run
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS processing_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    processed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    file_name TEXT NOT NULL,
                    stats TEXT NOT NULL
                )
            """)

            # Phone history ledger: normalized number -> kept occurrences across runs
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS phone_history (
                    phone_number TEXT PRIMARY KEY,
                    occurrence_count INTEGER NOT NULL DEFAULT 0 CHECK (occurrence_count >= 0)
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_created_at ON jobs(created_at)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_uploaded_files_uploaded_at ON uploaded_files(uploaded_at)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_history_processed_at ON processing_history(processed_at)")

        try:
            with self.get_connection() as conn:
                _init_schema(conn)
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def create_job(self, settings: Dict, input_file: str, status: str = "idle") -> str:
        """Create a new processing job"""
        job_id = str(uuid.uuid4())

        def _create_job(conn):
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO jobs (id, status, settings, input_file)
                VALUES (?, ?, ?, ?)
            """, (job_id, status, json.dumps(settings), input_file))

        try:
            with self.get_connection() as conn:
                self._execute_with_retry(lambda: _create_job(conn))
            logger.debug(f"Created job: {job_id}")
            return job_id
        except Exception as e:
            logger.error(f"Failed to create job: {e}")
            raise

    def update_job_status(
        self,
        job_id: str,
        status: str,
        status_message: Optional[str] = None,
        output_filename: Optional[str] = None,
        download_name: Optional[str] = None,
        error: Optional[str] = None,
    ):
        """Update job status; optional fields are only written when given"""
        def _update_status(conn):
            updates = ["status = ?"]
            params: List[Any] = [status]
            for column, value in (
                ("status_message", status_message),
                ("output_filename", output_filename),
                ("download_name", download_name),
                ("error", error),
            ):
                if value is not None:
                    updates.append(f"{column} = ?")
                    params.append(value)
            params.append(job_id)
            cursor = conn.cursor()
            cursor.execute(f"UPDATE jobs SET {', '.join(updates)} WHERE id = ?", params)

        try:
            with self.get_connection() as conn:
                self._execute_with_retry(lambda: _update_status(conn))
            logger.debug(f"Updated job {job_id} status to {status}")
        except Exception as e:
            logger.error(f"Failed to update job status for {job_id}: {e}")
            raise

    def save_job_result(self, job_id: str, stats: Optional[Dict] = None,
                        report: Optional[str] = None, report_error: Optional[str] = None):
        """Save statistics and narrative report for a job"""
        def _save_result(conn):
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO job_results (job_id, stats, report, report_error)
                VALUES (?, ?, ?, ?)
            """, (job_id, json.dumps(stats) if stats is not None else None, report, report_error))

        try:
            with self.get_connection() as conn:
                self._execute_with_retry(lambda: _save_result(conn))
            logger.debug(f"Saved result for job: {job_id}")
        except Exception as e:
            logger.error(f"Failed to save result for job {job_id}: {e}")
            raise

    def get_job(self, job_id: str) -> Optional[Dict]:
        """Get job with its statistics and report"""
        def _get_job(conn):
            cursor = conn.cursor()

            cursor.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
            job_row = cursor.fetchone()

            if not job_row:
                return None

            job = dict(job_row)
            job["settings"] = json.loads(job["settings"]) if job["settings"] else {}

            cursor.execute("SELECT * FROM job_results WHERE job_id = ?", (job_id,))
            result_row = cursor.fetchone()

            if result_row:
                job["stats"] = json.loads(result_row["stats"]) if result_row["stats"] else None
                job["report"] = result_row["report"]
                job["report_error"] = result_row["report_error"]
            else:
                job["stats"] = None
                job["report"] = None
                job["report_error"] = None

            return job

        try:
            with self.get_connection() as conn:
                return _get_job(conn)
        except Exception as e:
            logger.error(f"Failed to get job {job_id}: {e}")
            raise

    def list_jobs(self, limit: int = 50) -> List[Dict]:
        """List all jobs, most recent first"""
        def _list_jobs(conn):
            cursor = conn.cursor()
            cursor.execute("""
                SELECT id, created_at, status, status_message, output_filename, download_name, settings, input_file
                FROM jobs
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
            """, (limit,))

            jobs = []
            for row in cursor.fetchall():
                job = dict(row)
                job["settings"] = json.loads(job["settings"]) if job["settings"] else {}
                jobs.append(job)

            return jobs

        try:
            with self.get_connection() as conn:
                return _list_jobs(conn)
        except Exception as e:
            logger.error(f"Failed to list jobs: {e}")
            raise

    def delete_job(self, job_id: str) -> bool:
        """Delete job and its results (cascade deletes job_results due to foreign key)"""
        def _delete_job(conn):
            cursor = conn.cursor()
            cursor.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            return cursor.rowcount > 0

        try:
            with self.get_connection() as conn:
                deleted = self._execute_with_retry(lambda: _delete_job(conn))
            if deleted:
                logger.debug(f"Deleted job: {job_id}")
            return deleted
        except Exception as e:
            logger.error(f"Failed to delete job {job_id}: {e}")
            raise

    def save_uploaded_file(self, file_id: str, original_name: str, stored_path: str,
                           file_size: int, validation_result: Optional[Dict] = None) -> None:
        """Save uploaded file metadata with optional validation result"""
        def _save_file(conn):
            cursor = conn.cursor()
            validation_json = json.dumps(validation_result) if validation_result else None
            cursor.execute("""
                INSERT INTO uploaded_files (id, original_name, stored_path, file_size, validation_result)
                VALUES (?, ?, ?, ?, ?)
            """, (file_id, original_name, stored_path, file_size, validation_json))

        try:
            with self.get_connection() as conn:
                self._execute_with_retry(lambda: _save_file(conn))
            logger.debug(f"Saved uploaded file: {file_id}")
        except Exception as e:
            logger.error(f"Failed to save uploaded file {file_id}: {e}")
            raise

    def get_uploaded_file(self, file_id: str) -> Optional[Dict]:
        """Get uploaded file metadata"""
        def _get_file(conn):
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM uploaded_files WHERE id = ?", (file_id,))
            row = cursor.fetchone()
            if not row:
                return None
            file_dict = dict(row)
            if file_dict.get('validation_result'):
                try:
                    file_dict['validation_result'] = json.loads(file_dict['validation_result'])
                except (json.JSONDecodeError, TypeError):
                    file_dict['validation_result'] = None
            return file_dict

        try:
            with self.get_connection() as conn:
                return _get_file(conn)
        except Exception as e:
            logger.error(f"Failed to get uploaded file {file_id}: {e}")
            raise

    def update_file_last_used(self, file_id: str) -> None:
        """Update last_used_at timestamp for a file"""
        def _update_timestamp(conn):
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE uploaded_files
                SET last_used_at = CURRENT_TIMESTAMP
                WHERE id = ?
            """, (file_id,))

        try:
            with self.get_connection() as conn:
                self._execute_with_retry(lambda: _update_timestamp(conn))
            logger.debug(f"Updated last_used_at for file: {file_id}")
        except Exception as e:
            logger.error(f"Failed to update last_used_at for file {file_id}: {e}")
            raise

    def add_history_item(self, file_name: str, stats: Dict) -> int:
        """Record a completed run in the processing history"""
        def _add_item(conn):
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO processing_history (file_name, stats)
                VALUES (?, ?)
            """, (file_name, json.dumps(stats)))
            return cursor.lastrowid

        try:
            with self.get_connection() as conn:
                item_id = self._execute_with_retry(lambda: _add_item(conn))
            logger.debug(f"Added processing history item {item_id} for {file_name}")
            return item_id
        except Exception as e:
            logger.error(f"Failed to add processing history for {file_name}: {e}")
            raise

    def list_history(self, limit: int = 50) -> List[Dict]:
        """List processing history, most recent first"""
        def _list_history(conn):
            cursor = conn.cursor()
            cursor.execute("""
                SELECT id, processed_at, file_name, stats
                FROM processing_history
                ORDER BY id DESC
                LIMIT ?
            """, (limit,))
            items = []
            for row in cursor.fetchall():
                item = dict(row)
                item["stats"] = json.loads(item["stats"])
                items.append(item)
            return items

        try:
            with self.get_connection() as conn:
                return _list_history(conn)
        except Exception as e:
            logger.error(f"Failed to list processing history: {e}")
            raise

    def check_database_health(self) -> Dict[str, Any]:
        """
        Check database health and accessibility.

        Returns:
            Dictionary with health check results:
            - accessible: bool - True if database file is accessible
            - file_exists: bool - True if database file exists
            - file_size: int - Size of database file in bytes
            - table_counts: Dict[str, int] - Count of records in each table
        """
        health = {
            "accessible": False,
            "file_exists": False,
            "file_size": 0,
            "table_counts": {}
        }

        health["file_exists"] = self.db_path.exists()
        if not health["file_exists"]:
            return health

        health["file_size"] = self.db_path.stat().st_size

        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT 1")
                cursor.fetchone()
                health["accessible"] = True

                # SQLite doesn't support parameterized table names, so only fixed names are used
                for table in ("jobs", "job_results", "uploaded_files", "processing_history", "phone_history"):
                    cursor.execute(f"SELECT COUNT(*) FROM {table}")
                    health["table_counts"][table] = cursor.fetchone()[0]
        except sqlite3.Error as e:
            logger.error(f"Database health check failed: {e}")
            health["accessible"] = False

        return health
