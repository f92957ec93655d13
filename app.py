"""
NetStats - Main Flask Application
Collects browser network diagnostics and files them under shareable reference IDs
"""
from flask import Flask, jsonify, g
from werkzeug.exceptions import RequestEntityTooLarge

from config_logging import (
    AppConfig, StructuredLogger, configure_loggers, get_config, set_config, get_logger, APP_NAME, VERSION
)
from diagnostics_store import DiagnosticsStore, set_store, get_store
from diagnostics_store.routes import ds_blueprint

logger = get_logger('app')


def create_app(config: AppConfig = None, store: DiagnosticsStore = None) -> Flask:
    """Build the Flask application around a config and a diagnostics store."""
    if config is not None:
        set_config(config)
    config = get_config()
    configure_loggers(config)

    set_store(store or DiagnosticsStore(config.profiles_dir))

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.max_content_length
    # Keep records in their stored field order
    app.json.sort_keys = False

    app.register_blueprint(ds_blueprint)

    @app.before_request
    def assign_correlation_id():
        g.correlation_id = StructuredLogger.new_correlation_id()

    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        correlation_id = getattr(g, 'correlation_id', None)
        if correlation_id:
            response.headers['X-Correlation-ID'] = correlation_id
        return response

    @app.errorhandler(RequestEntityTooLarge)
    def payload_too_large(e):
        logger.warning("Rejected oversized request body", limit=config.max_content_length)
        return jsonify({'error': 'Diagnostics payload too large'}), 413

    return app


def main():
    config = get_config()
    is_valid, errors = config.validate()
    if not is_valid:
        for error in errors:
            logger.critical(f"Invalid configuration: {error}")
        raise SystemExit(1)

    app = create_app(config)
    get_store().ensure_root()

    logger.info(f"{APP_NAME} v{VERSION} running at http://{config.host}:{config.port}",
                profiles_dir=str(config.profiles_dir))
    app.run(host=config.host, port=config.port, debug=config.debug)


if __name__ == '__main__':
    main()
