"""Flask application factory for the certificate and uptime monitor API."""

import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()  # Load .env file if present (already gitignored)

from flask import Flask, jsonify, request

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

VERSION = "0.1.0"


def create_app(config: dict = None, services=None, scheduler=None):
    """Create and configure the Flask application.

    The scheduler is owned by the caller; the app only reports its state.
    """
    from web.services import EXTENSION_KEY, build_services

    app = Flask(__name__)
    app.config["JSON_SORT_KEYS"] = False
    if config:
        app.config.update(config)

    app.extensions[EXTENSION_KEY] = services or build_services()
    app.extensions[f"{EXTENSION_KEY}.scheduler"] = scheduler

    from web.routes.api import bp as api_bp
    app.register_blueprint(api_bp, url_prefix="/api/v1")

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": f"Method {request.method} not allowed"}), 405

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/health")
    def health_check():
        return jsonify({
            "status": "healthy",
            "version": VERSION,
            "scheduler_running": bool(scheduler and scheduler.running),
        }), 200

    return app
