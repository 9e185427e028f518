"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
from quotedesk.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'The session expired. Reload and try again.'}), 400

    # Initialize Sentry for error tracking in production
    sentry_dsn = app.config.get('SENTRY_DSN') or os.getenv('SENTRY_DSN')
    if sentry_dsn and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Production: Enable ProxyFix for HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Load the current user before each request
    from quotedesk.middleware import load_user

    @app.before_request
    def before_request_handler():
        """Load user context for each request."""
        load_user()

    # Error Handlers
    from quotedesk.exceptions import QuoteDeskError

    @app.errorhandler(QuoteDeskError)
    def handle_quotedesk_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"QuoteDeskError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"QuoteDeskError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        import traceback
        if isinstance(error, HTTPException):
            return jsonify({'status': 'error', 'message': error.name}), error.code
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from quotedesk.blueprints.auth import auth_bp
    from quotedesk.blueprints.quotes import quotes_bp
    from quotedesk.blueprints.catalog import catalog_bp
    from quotedesk.blueprints.templates import templates_bp
    from quotedesk.blueprints.notifications import notifications_bp
    from quotedesk.blueprints.projects import projects_bp
    from quotedesk.blueprints.transactions import transactions_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(templates_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(transactions_bp)

    # Register CLI commands
    from quotedesk.cli_commands import init_cli_commands
    init_cli_commands(app)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    app.logger.info(f"QuoteDesk started (ENV={app.config.get('ENV')})")

    return app
