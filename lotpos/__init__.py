"""Flask application factory."""
from flask import Flask, jsonify
from lotpos.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize database
    init_db(app)

    # Error Handlers
    from lotpos.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Render engine errors as structured JSON."""
        if error.status_code >= 500:
            app.logger.error(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'kind': 'not_found', 'message': 'Not Found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'kind': 'internal_error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from lotpos.blueprints.sales import sales_bp
    app.register_blueprint(sales_bp)

    # Register CLI commands
    from lotpos.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
