"""
DocQA Application Factory
"""
import logging
import os
from datetime import datetime, timezone

from cachelib.file import FileSystemCache
from flask import Flask, jsonify
from flask_login import LoginManager
from flask_session import Session
from flask_wtf.csrf import CSRFProtect

from docqa.config import get_config

login_manager = LoginManager()
csrf = CSRFProtect()
server_session = Session()


def create_app(config_name='default', services=None):
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    if app.config.get('SESSION_CACHELIB') is None:
        app.config['SESSION_CACHELIB'] = FileSystemCache(
            cache_dir=app.config['SESSION_FILE_DIR'],
            threshold=app.config['SESSION_FILE_THRESHOLD'],
            mode=0o600,
        )

    # Initialize extensions
    server_session.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)

    login_manager.login_view = 'auth.login'
    login_manager.login_message = None

    if services is None:
        from docqa.services import build_services
        services = build_services(app.config)
    app.extensions['docqa'] = services

    # Register blueprints
    from docqa.auth import auth_bp
    from docqa.api import api_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.route('/version')
    def version():
        """Version and build info"""
        return jsonify({
            "version": app.config.get('APP_VERSION'),
            "time_utc": datetime.now(timezone.utc).isoformat(),
        })

    app.logger.info('DocQA started (config=%s, store=%s)', config_name, type(services.store).__name__)
    return app
