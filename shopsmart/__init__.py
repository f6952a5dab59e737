"""Flask application factory."""
from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from shopsmart.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection (JSON API blueprints are exempted below)
    csrf = CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': e.description}), 400

    # Error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Prometheus metrics instrumentation
    from shopsmart.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust X-Forwarded-* from the reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Product image storage (creates the upload directories)
    from shopsmart.services.image_storage_service import init_image_storage
    init_image_storage(app)

    # Load the bearer-token user before each request
    from shopsmart.middleware import load_current_user

    @app.before_request
    def before_request_handler():
        load_current_user()

    # Error Handlers
    from shopsmart.exceptions import ShopError

    @app.errorhandler(ShopError)
    def handle_shop_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"ShopError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"ShopError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def request_too_large(error):
        max_size = app.config.get('MAX_IMAGE_SIZE', 5 * 1024 * 1024)
        return jsonify({
            'status': 'error',
            'error': 'File too large',
            'message': f"File size must be less than {max_size / (1024 * 1024):g}MB"
        }), 413

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception on {request.method} {request.path}: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from shopsmart.blueprints.auth import auth_bp
    from shopsmart.blueprints.catalog import catalog_bp
    from shopsmart.blueprints.cart import cart_bp
    from shopsmart.blueprints.admin import admin_bp
    from shopsmart.blueprints.metrics import metrics_bp

    # Bearer-token/JSON clients do not carry CSRF tokens
    for blueprint in (auth_bp, catalog_bp, cart_bp, admin_bp):
        csrf.exempt(blueprint)
        app.register_blueprint(blueprint)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from shopsmart.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
