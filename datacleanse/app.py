"""
Flask REST API for the DataCleanse phone list web app.
"""
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Optional
from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
import logging

from datacleanse import config, __version__
from datacleanse.database import Database
from datacleanse.engine import processed_file_name
from datacleanse.errors import (
    HistoryResetRefused, InputFormatError, LedgerIOError, NormalizationFailure
)
from datacleanse.state import RunState, RunStateMachine
from datacleanse.api.excel_validator import validate_spreadsheet
from datacleanse.api.processing_service import ProcessingService
from datacleanse.api.report_generator import generate_report_safely
from datacleanse.api.settings_utils import settings_from_request, settings_to_request, wants_report
from datacleanse.api.upload_handler import save_uploaded_file, cleanup_files, expired_files

logger = logging.getLogger(__name__)

MIMETYPES = {
    '.xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    '.csv': 'text/csv',
}


def create_app(
    database_path: Optional[str] = None,
    upload_folder: Optional[Path] = None,
    results_folder: Optional[Path] = None,
    process_async: bool = True,
    report_client: Any = None,
) -> Flask:
    """
    Build the Flask app.

    Args:
        database_path: SQLite file (config.DATABASE_PATH by default)
        upload_folder: Where uploads are stored
        results_folder: Where cleaned files are written
        process_async: Run jobs in a background thread; False runs them inside the request
        report_client: Object exposing messages.create, replaces the Anthropic client
    """
    upload_folder = Path(upload_folder or config.UPLOAD_FOLDER)
    results_folder = Path(results_folder or config.RESULTS_FOLDER)
    config.ensure_storage_dirs(upload_folder, results_folder)

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.MAX_CONTENT_LENGTH
    app.config['SECRET_KEY'] = config.SECRET_KEY
    app.config['PROCESS_ASYNC'] = process_async
    CORS(app, origins=config.CORS_ORIGINS)

    db = Database(str(database_path or config.DATABASE_PATH))
    service = ProcessingService(db, results_folder)
    app.extensions['datacleanse'] = {'db': db, 'service': service}

    stale = expired_files(upload_folder, config.FILE_RETENTION_DAYS)
    if stale:
        logger.info(f"Removing {len(stale)} uploads older than {config.FILE_RETENTION_DAYS} days")
        cleanup_files(stale)

    def process_job(job_id: str, input_path: str, original_name: str, request_settings: Dict):
        """Run one job through Processing -> Analyzing -> Completed"""
        machine = RunStateMachine()
        machine.subscribe(lambda state, message: db.update_job_status(job_id, state.value, status_message=message))

        try:
            machine.start()
            engine_settings = settings_from_request(request_settings)
            output_name = job_id + Path(processed_file_name(original_name)).suffix
            outcome = service.process_file(input_path, original_name, engine_settings, output_name=output_name)
            db.save_job_result(job_id, stats=outcome.stats)

            report, report_error = "", None
            if wants_report(request_settings):
                machine.analyze()
                report, report_error = generate_report_safely(outcome.stats, client=report_client)
            else:
                machine.analyze("Skipping AI Analysis")

            db.save_job_result(job_id, stats=outcome.stats, report=report, report_error=report_error)
            db.update_job_status(
                job_id,
                machine.state.value,
                output_filename=outcome.output_path.name,
                download_name=outcome.download_name,
            )
            machine.complete()
            logger.info(f"Job {job_id} completed successfully")

        except InputFormatError as e:
            logger.warning(f"Job {job_id} rejected unreadable input: {e}")
            db.update_job_status(job_id, machine.state.value, error=str(e))
            machine.fail(f"The spreadsheet could not be read: {e}")
        except LedgerIOError as e:
            logger.error(f"Job {job_id} ledger failure: {e}", exc_info=True)
            db.update_job_status(job_id, machine.state.value, error=str(e))
            machine.fail("Phone history is unavailable; no changes were saved.")
        except Exception as e:
            logger.error(f"Error processing job {job_id}: {e}", exc_info=True)
            db.update_job_status(job_id, machine.state.value, error=str(e))
            if machine.can_transition(RunState.ERROR):
                machine.fail()

    def job_payload(job: Dict) -> Dict[str, Any]:
        payload = {
            "id": job["id"],
            "created_at": job["created_at"],
            "status": job["status"],
            "statusMessage": job.get("status_message"),
            "settings": job["settings"],
            "inputFile": job["input_file"],
        }
        if job.get("error"):
            payload["error"] = job["error"]
        if job.get("stats") is not None:
            payload["stats"] = job["stats"]
        if "report" in job:
            payload["report"] = job.get("report") or ""
            payload["reportError"] = job.get("report_error")
        if job["status"] == RunState.COMPLETED.value and job.get("output_filename"):
            payload["downloadUrl"] = f"/api/jobs/{job['id']}/download"
            payload["downloadName"] = job.get("download_name")
        return payload

    @app.route('/api/upload', methods=['POST'])
    def upload_file():
        """Upload one spreadsheet and validate it"""
        try:
            saved_path, original_name = save_uploaded_file(request, upload_folder)
        except ValueError as e:
            logger.error(f"Upload error: {e}")
            return jsonify({"success": False, "error": str(e)}), 400

        try:
            validation = validate_spreadsheet(saved_path, original_name)
        except InputFormatError as e:
            cleanup_files([saved_path])
            logger.warning(f"Rejected upload {original_name}: {e}")
            return jsonify({"success": False, "error": str(e)}), 400

        file_id = str(uuid.uuid4())
        file_size = os.path.getsize(saved_path) if os.path.exists(saved_path) else 0
        db.save_uploaded_file(file_id, original_name, saved_path, file_size, validation)

        return jsonify({
            "success": True,
            "fileId": file_id,
            "fileName": original_name,
            "validation": validation,
        }), 200

    @app.route('/api/process', methods=['POST'])
    def process_spreadsheet():
        """Start processing job"""
        data = request.get_json(silent=True) or {}
        file_id = data.get("fileId")
        file_name = data.get("file")
        request_settings = data.get("settings") or {}

        if not file_id and not file_name:
            return jsonify({"success": False, "error": "No file provided"}), 400

        try:
            engine_settings = settings_from_request(request_settings)
        except ValueError as e:
            return jsonify({"success": False, "error": f"Invalid settings: {e}"}), 400

        if file_id:
            file_meta = db.get_uploaded_file(file_id)
            if not file_meta or not Path(file_meta["stored_path"]).exists():
                return jsonify({"success": False, "error": f"File ID not found or file missing: {file_id}"}), 404
            input_path = file_meta["stored_path"]
            original_name = file_meta["original_name"]
            db.update_file_last_used(file_id)
        else:
            # Only names inside the upload folder are accepted
            candidate = upload_folder / Path(file_name).name
            if not candidate.exists():
                return jsonify({"success": False, "error": f"Could not find uploaded file: {file_name}"}), 404
            input_path = str(candidate)
            original_name = candidate.name

        job_settings = dict(settings_to_request(engine_settings), generateReport=wants_report(request_settings))
        job_id = db.create_job(job_settings, original_name, status=RunState.IDLE.value)

        if app.config['PROCESS_ASYNC']:
            thread = threading.Thread(
                target=process_job,
                args=(job_id, input_path, original_name, job_settings)
            )
            thread.daemon = True
            thread.start()
        else:
            process_job(job_id, input_path, original_name, job_settings)

        job = db.get_job(job_id)
        return jsonify({
            "success": True,
            "jobId": job_id,
            "status": job["status"] if job else RunState.IDLE.value,
        }), 202

    @app.route('/api/jobs/<job_id>', methods=['GET'])
    def get_job(job_id: str):
        """Get job status, statistics and report"""
        try:
            job = db.get_job(job_id)
            if not job:
                return jsonify({"success": False, "error": "Job not found"}), 404
            return jsonify({"success": True, "job": job_payload(job)}), 200
        except Exception as e:
            logger.error(f"Get job error: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/jobs/<job_id>/download', methods=['GET'])
    def download_results(job_id: str):
        """Download the cleaned spreadsheet"""
        job = db.get_job(job_id)
        if not job:
            return jsonify({"success": False, "error": "Job not found"}), 404

        if job["status"] != RunState.COMPLETED.value:
            return jsonify({"success": False, "error": "Job not completed"}), 400

        output_file = results_folder / job["output_filename"]
        if not output_file.exists():
            return jsonify({"success": False, "error": "File not found"}), 404

        return send_file(
            str(output_file),
            mimetype=MIMETYPES.get(output_file.suffix.lower(), 'application/octet-stream'),
            as_attachment=True,
            download_name=job.get("download_name") or job["output_filename"]
        )

    @app.route('/api/jobs', methods=['GET'])
    def list_jobs():
        """List all processing jobs"""
        try:
            limit = request.args.get('limit', 50, type=int)
            jobs = db.list_jobs(limit)
            return jsonify({
                "success": True,
                "jobs": [
                    {
                        "id": job["id"],
                        "created_at": job["created_at"],
                        "status": job["status"],
                        "statusMessage": job["status_message"],
                        "inputFile": job["input_file"],
                        "settings": job["settings"]
                    }
                    for job in jobs
                ]
            }), 200
        except Exception as e:
            logger.error(f"List jobs error: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route('/api/jobs/<job_id>', methods=['DELETE'])
    def delete_job(job_id: str):
        """Delete job and its output file"""
        job = db.get_job(job_id)
        if not job:
            return jsonify({"success": False, "error": "Job not found"}), 404

        if RunStateMachine(RunState(job["status"])).is_busy:
            return jsonify({"success": False, "error": "Job is still running"}), 409

        if job.get("output_filename"):
            output_file = results_folder / job["output_filename"]
            if output_file.exists():
                output_file.unlink()

        if db.delete_job(job_id):
            return jsonify({"success": True}), 200
        return jsonify({"success": False, "error": "Could not delete job"}), 500

    @app.route('/api/history', methods=['GET'])
    def list_history():
        """List completed runs and the number of tracked phone numbers"""
        try:
            limit = request.args.get('limit', 50, type=int)
            summary = service.history_summary(limit)
        except LedgerIOError as e:
            logger.error(f"History error: {e}")
            return jsonify({"success": False, "error": str(e)}), 503
        return jsonify({"success": True, **summary}), 200

    @app.route('/api/history/<number>', methods=['GET'])
    def lookup_number(number: str):
        """Look up how often a number has been kept before"""
        try:
            result = service.lookup_number(number)
        except NormalizationFailure as e:
            return jsonify({"success": False, "error": str(e)}), 400
        except LedgerIOError as e:
            logger.error(f"Lookup error: {e}")
            return jsonify({"success": False, "error": str(e)}), 503
        return jsonify({"success": True, **result}), 200

    @app.route('/api/history/reset', methods=['POST'])
    def reset_history():
        """Clear the phone history; requires {"confirm": true}"""
        data = request.get_json(silent=True) or {}
        if data.get("confirm") is not True:
            return jsonify({"success": False, "error": "Reset must be confirmed with {\"confirm\": true}"}), 400
        try:
            cleared = service.reset_history()
        except HistoryResetRefused as e:
            return jsonify({"success": False, "error": str(e)}), 409
        except LedgerIOError as e:
            logger.error(f"Reset error: {e}")
            return jsonify({"success": False, "error": str(e)}), 503
        return jsonify({"success": True, "cleared": cleared}), 200

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        health = db.check_database_health()
        status = "healthy" if health["accessible"] else "degraded"
        return jsonify({
            "status": status,
            "version": __version__,
            "database": health,
            "processing": service.is_running,
        }), 200 if health["accessible"] else 503

    return app


def main():
    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
    app = create_app()
    # Bind to 0.0.0.0 to allow access from Docker containers
    app.run(debug=config.DEBUG, host='0.0.0.0', port=int(os.environ.get("PORT", "5000")))


if __name__ == '__main__':
    main()
