"""
Ops HTTP API for running the pipeline outside Cloud Functions.

Lets an operator trigger the periodic jobs by hand and lets clients register
or drop device tokens.
"""
import hmac

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from firebase_functions import logger

import config
import deadline_notifications
import fcm_tokens
import recurring_tasks
import task_reminders
import weekly_summary

ops_bp = Blueprint("ops", __name__)


def _clients():
    return current_app.config["CLIENTS"]


@ops_bp.before_request
def require_ops_token():
    expected = current_app.config.get("OPS_API_TOKEN")
    if not expected:
        return None
    supplied = request.headers.get("X-Ops-Token", "")
    if not hmac.compare_digest(supplied, expected):
        return jsonify({"error": "Unauthorized"}), 401
    return None


def _run_job(name: str, job):
    try:
        summary = job()
    except Exception as e:
        logger.error("Manual job run failed", job=name, error=str(e))
        return jsonify({"success": False, "error": str(e)}), 500
    if summary.error:
        return jsonify({"success": False, "error": summary.error, "summary": summary.as_dict()}), 500
    return jsonify({"success": True, "summary": summary.as_dict()}), 200


@ops_bp.route("/notifications/check-deadlines", methods=["POST"])
def trigger_deadline_check():
    return _run_job("daily-reminders", lambda: deadline_notifications.send_daily_reminders(_clients()))


@ops_bp.route("/notifications/weekly-summary", methods=["POST"])
def trigger_weekly_summary():
    return _run_job("weekly-summary", lambda: weekly_summary.send_weekly_summaries(_clients()))


@ops_bp.route("/notifications/process-reminders", methods=["POST"])
def trigger_scheduled_reminders():
    return _run_job("scheduled-reminders", lambda: task_reminders.process_due_reminders(_clients()))


@ops_bp.route("/tasks/generate-recurring", methods=["POST"])
def trigger_recurring_generation():
    return _run_job("recurring-tasks", lambda: recurring_tasks.generate_recurring_tasks(_clients().db))


@ops_bp.route("/users/<user_id>/fcm-tokens", methods=["POST", "DELETE"])
def fcm_token(user_id):
    payload = request.get_json(silent=True) or {}
    token = (payload.get("token") or "").strip()
    if not token:
        return jsonify({"error": "token is required"}), 400

    db = _clients().db
    if request.method == "POST":
        found = fcm_tokens.save_fcm_token(db, user_id, token)
        message = "Token saved"
    else:
        found = fcm_tokens.remove_fcm_token(db, user_id, token)
        message = "Token removed"
    if not found:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"message": message}), 200


def create_app(clients=None) -> Flask:
    if clients is None:
        from clients import init_clients
        clients = init_clients()

    app = Flask(__name__)
    app.config["CLIENTS"] = clients
    app.config["OPS_API_TOKEN"] = config.OPS_API_TOKEN
    CORS(app, resources={r"/api/*": {"origins": "*"}})
    app.register_blueprint(ops_bp, url_prefix="/api")
    return app


# Running app
if __name__ == "__main__":
    app = create_app()
    if config.ENABLE_BACKGROUND_SCHEDULER:
        from scheduler import start_background_scheduler
        start_background_scheduler(app.config["CLIENTS"])
    else:
        logger.info("Background scheduler disabled; set ENABLE_BACKGROUND_SCHEDULER=true to enable")

    app.run(debug=True, use_reloader=False)  # use_reloader=False prevents double initialization
