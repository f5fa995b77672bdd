"""
API gateway: combines every service blueprint under /api.
This is the local entrypoint for development.
"""

from flask import Flask, jsonify
from flask_cors import CORS
import os
import logging
from dotenv import load_dotenv

load_dotenv()

# Basic console logging during API requests
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")

DEFAULT_ORIGINS = [
    "http://localhost:3000",  # React dev server
    "http://localhost:5173",  # Vite dev server
]


def allowed_origins() -> list:
    """FRONTEND_URL may hold several comma-separated origins."""
    configured = [o.strip() for o in os.getenv("FRONTEND_URL", "").split(",") if o.strip()]
    return configured or DEFAULT_ORIGINS


def scheduler_enabled(app: Flask) -> bool:
    if app.config.get("TESTING"):
        return False
    return os.getenv("ENABLE_NOTIFICATION_SCHEDULER", "true").strip().lower() not in ("0", "false", "no", "off")


def create_app(config: dict = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        config (dict, optional): Values merged into app.config before setup,
            e.g. {"TESTING": True}.

    Returns:
        Flask: The configured Flask application.
    """
    app = Flask(__name__)
    app.config.update(config or {})
    # Meal slots are served in breakfast..snack2 order, not alphabetically
    app.json.sort_keys = False

    CORS(app, resources={
        r"/api/*": {
            "origins": allowed_origins(),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "expose_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True
        }
    })

    # --- REGISTER BLUEPRINTS ---
    from activecore.auth_service.routes import auth_bp
    from activecore.members_service.routes import members_bp
    from activecore.payments_service.routes import payments_bp
    from activecore.attendance_service.routes import attendance_bp
    from activecore.rewards_service.routes import rewards_bp
    from activecore.meal_planner_service.routes import meal_planner_bp
    from activecore.notifications_service.routes import notifications_bp

    for blueprint in (auth_bp, members_bp, payments_bp, attendance_bp,
                      rewards_bp, meal_planner_bp, notifications_bp):
        app.register_blueprint(blueprint, url_prefix="/api")

    logging.info("All blueprints registered successfully.")

    # --- JSON ERRORS ---
    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def server_error(_error):
        return jsonify({"error": "Internal server error"}), 500

    # --- BASIC HEALTH CHECKPOINTS ---
    from activecore.database import db_connection
    from activecore.meal_planner_service import ai_client
    from activecore.payments_service import paymongo

    @app.route("/")
    def root():
        """
        Root URL for simple 'online' check.
        """
        return jsonify({"status": "gateway_ok"}), 200

    @app.route("/api/ping")
    def ping():
        return jsonify({"success": True, "message": "pong"}), 200

    @app.route("/api/health")
    def health():
        """
        Health check endpoint. 503 when the database does not answer.
        """
        if db_connection.check_connection():
            return jsonify({"status": "ok", "database": "connected"}), 200
        return jsonify({"status": "error", "database": "disconnected"}), 503

    @app.route("/api/system/status")
    def system_status():
        """
        Reachability of the database, the AI provider and the payment gateway.
        """
        return jsonify({
            "success": True,
            "database": db_connection.check_connection(),
            "ai": {
                "service": ai_client.ACTIVE_AI_SERVICE,
                "available": ai_client.ai_available(),
            },
            "paymentGateway": paymongo.gateway_reachable(),
        }), 200

    # --- BACKGROUND JOBS ---
    if scheduler_enabled(app):
        from activecore.notifications_service.sweep import start_notification_scheduler
        start_notification_scheduler()

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("GATEWAY_PORT", 3002))
    app.run(host="0.0.0.0", port=port, debug=True, use_reloader=False)
