import logging
import os
from logging.config import dictConfig

import click
from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from extensions import limiter
from models import db

# Load .env before the config classes read the environment
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(BASE_DIR, '.env'))

from config import config_by_name
from services.auth_service import AuthConfigError, validate_auth_config

app = Flask(__name__)
# Behind a reverse proxy: trust one hop of X-Forwarded-* headers
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

# Pick the settings class (production unless told otherwise)
env_name = os.environ.get('FLASK_ENV', 'production')
app_config = config_by_name[env_name]()
app.config.from_object(app_config)

# Logging
LOG_DIR = os.path.join(BASE_DIR, 'logs')
if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR)

dictConfig(app_config.get_logging_config(LOG_DIR))
logger = logging.getLogger(__name__)

try:
    validate_auth_config(app.config)
except AuthConfigError as exc:
    # ProductionConfig has already refused to start; elsewhere just warn
    logger.warning("Admin auth is not configured, login will fail: %s", exc)

# Extensions
db.init_app(app)
limiter.init_app(app)

# Blueprints and the request gatekeeper
from routes import register_blueprints
register_blueprints(app)


@app.route('/api/health')
def health():
    try:
        db.session.execute(db.text('SELECT 1'))
        return jsonify({"status": "healthy", "database": "connected"}), 200
    except Exception:
        logger.exception("Health check failed")
        return jsonify({"status": "unhealthy", "database": "unavailable"}), 503


@app.after_request
def set_security_headers(response):
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    return response


@app.errorhandler(HTTPException)
def http_error(e):
    return jsonify({"success": False, "error": e.name}), e.code


@app.errorhandler(500)
def internal_server_error(e):
    logger.exception("500 Internal Server Error: %s", e)
    return jsonify({"success": False, "error": "Internal server error"}), 500


@app.cli.command('init-db')
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("Database tables created.")


if __name__ == '__main__':
    use_debug = os.environ.get('FLASK_DEBUG', '0') == '1'
    app.run(host='127.0.0.1', port=5000, debug=use_debug)
