"""Initialize the Flask app and its extensions."""

import atexit
import json
import os
import weakref

import firebase_admin
from firebase_admin import credentials
from flask import Flask, g
from werkzeug.middleware.proxy_fix import ProxyFix

from .core.constants import (
    DEFAULT_FANOUT_MAX_WORKERS,
    DEFAULT_FANOUT_QUEUE_SIZE,
    FANOUT_EXTENSION_KEY,
    GROUP_IMAGE_FOLDER,
    MESSAGE_IMAGE_FOLDER,
)
from .extensions import socketio
from .realtime.bus import FanoutBus

# Buses of live app instances, stopped once at interpreter exit
_fanout_buses = weakref.WeakSet()


@atexit.register
def _stop_fanout_buses():
    for bus in list(_fanout_buses):
        bus.stop(wait=False)


def _init_firebase(app):
    """Initialize the Firebase Admin SDK from env, file, or default credentials."""
    cred = None
    project_id = None
    cred_info = {}

    # First, try to load from environment variable (for production)
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        try:
            cred_info = json.loads(cred_json)
            project_id = cred_info.get("project_id")
            cred = credentials.Certificate(cred_info)
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    # If env var fails or is not present, try loading from file (for local dev)
    if not cred:
        cred_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
        )
        if os.path.exists(cred_path):
            try:
                with open(cred_path, "r") as f:
                    cred_info = json.load(f)
                project_id = cred_info.get("project_id")
                cred = credentials.Certificate(cred_path)
            except (json.JSONDecodeError, ValueError) as e:
                app.logger.error(f"Error loading credentials from file: {e}")

    # If both methods fail, fallback to default credentials
    if not cred:
        try:
            cred = credentials.ApplicationDefault()
            project_id = os.environ.get("FIREBASE_PROJECT_ID")
        except Exception as e:
            app.logger.error(
                f"Could not find any valid credentials (env, file, or default): {e}"
            )

    if cred and not firebase_admin._apps:
        try:
            storage_bucket = app.config.get("FIREBASE_STORAGE_BUCKET")
            if not storage_bucket and project_id:
                storage_bucket = f"{project_id}.firebasestorage.app"

            firebase_options = {"storageBucket": storage_bucket}
            if project_id:
                firebase_options["projectId"] = project_id

            firebase_admin.initialize_app(cred, firebase_options)
        except ValueError:
            # This can happen if the app is already initialized, which is fine.
            app.logger.info("Firebase app already initialized.")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        FIREBASE_STORAGE_BUCKET=os.environ.get("FIREBASE_STORAGE_BUCKET"),
        GROUP_IMAGE_FOLDER=GROUP_IMAGE_FOLDER,
        MESSAGE_IMAGE_FOLDER=MESSAGE_IMAGE_FOLDER,
        FANOUT_QUEUE_SIZE=int(
            os.environ.get("FANOUT_QUEUE_SIZE") or DEFAULT_FANOUT_QUEUE_SIZE
        ),
        FANOUT_MAX_WORKERS=int(
            os.environ.get("FANOUT_MAX_WORKERS") or DEFAULT_FANOUT_MAX_WORKERS
        ),
        SOCKETIO_CORS_ALLOWED_ORIGINS=os.environ.get("SOCKETIO_CORS_ALLOWED_ORIGINS")
        or "*",
        SOCKETIO_ASYNC_MODE=os.environ.get("SOCKETIO_ASYNC_MODE") or "threading",
    )

    if test_config:
        app.config.update(test_config)

    # Initialize Firebase Admin SDK only if not in testing mode
    if not app.config.get("TESTING"):
        _init_firebase(app)

    # One fanout bus per application instance
    bus = FanoutBus(
        queue_size=app.config["FANOUT_QUEUE_SIZE"],
        max_workers=app.config["FANOUT_MAX_WORKERS"],
    )
    app.extensions[FANOUT_EXTENSION_KEY] = bus
    _fanout_buses.add(bus)

    # Socket.IO handlers must be registered before the server is created
    from .realtime import handlers  # noqa: F401

    socketio.init_app(
        app,
        async_mode=app.config["SOCKETIO_ASYNC_MODE"],
        cors_allowed_origins=app.config["SOCKETIO_CORS_ALLOWED_ORIGINS"],
    )

    # Register blueprints
    from . import group as group_bp

    app.register_blueprint(group_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.before_request
    def load_caller_identity():
        """Resolve the caller's user id and store it in g."""
        from .auth.identity import resolve_caller_id

        g.user_id = resolve_caller_id()

    @app.route("/health")
    def health_check():
        """Perform a simple health check."""
        return "OK", 200

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
