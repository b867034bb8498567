"""Flask application factory."""
import os

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

from storepos.database import init_db, get_session


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis read cache
    from storepos.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from storepos.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Drafts live in process memory; one commit engine serves every seller
    from storepos.services.draft_sale import DraftSessionStore
    from storepos.services.sale_commit_service import SaleCommitEngine
    app.extensions['draft_store'] = DraftSessionStore()
    app.extensions['commit_engine'] = SaleCommitEngine.from_config(app.config, get_session)

    from storepos.middleware import load_seller

    @app.before_request
    def before_request_handler():
        """Load seller context for each request."""
        load_seller()

    # Error Handlers
    from storepos.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"PosError [{error.status_code}] {error.code}: {error.message}")
        else:
            app.logger.warning(f"PosError [{error.status_code}] {error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description, 'code': error.name}), error.code

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        import traceback
        app.logger.error(f"Unhandled Exception on {request.path}: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from storepos.blueprints.pos import pos_bp
    from storepos.blueprints.metrics import metrics_bp

    app.register_blueprint(pos_bp)
    app.register_blueprint(metrics_bp)

    # CLI commands
    from storepos.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
