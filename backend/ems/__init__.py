from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

from ems.config import settings
from ems.errors import EmsError

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _configure_logging(app: Flask):
    level = getattr(logging, app.config['LOG_LEVEL'], logging.INFO)
    logging.getLogger('ems').setLevel(level)
    app.logger.setLevel(level)


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', settings.DEFAULT_DATABASE_URL)
    app.config['LOG_LEVEL'] = settings.log_level()

    if config:
        app.config.update(config)

    _configure_logging(app)

    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # one shared in-memory database across sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .routes.config import cfg_bp
    from .routes.reports import rep_bp
    from .routes.directory import dir_bp
    from .routes.inventory import inv_bp
    app.register_blueprint(cfg_bp, url_prefix='/config')
    app.register_blueprint(rep_bp, url_prefix='/reports')
    app.register_blueprint(dir_bp, url_prefix='/directory')
    app.register_blueprint(inv_bp, url_prefix='/inventory')

    @app.teardown_appcontext
    def remove_session(exc=None):
        SessionLocal.remove()

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.errorhandler(EmsError)
    def handle_domain_error(e: EmsError):
        if e.status >= 500:
            app.logger.error('%s: %s', type(e).__name__, e.detail)
        return {'error': e.to_payload()}, e.status

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            return payload, e.code
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    return app


def get_db():
    return SessionLocal()
