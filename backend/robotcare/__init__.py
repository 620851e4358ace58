from flask import Flask, request
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import click

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    from .config.settings import load_settings
    app = Flask(__name__)

    app.config.update(load_settings())

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
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

    from .services.notifications import NotificationDispatcher, build_sender
    app.extensions['robotcare.notifications'] = NotificationDispatcher(
        build_sender(app.config), max_attempts=int(app.config['NOTIFY_MAX_ATTEMPTS'])
    )

    from .routes.iam import iam_bp
    from .routes.tickets import tkt_bp
    from .routes.team import team_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(tkt_bp, url_prefix='/tickets')
    app.register_blueprint(team_bp, url_prefix='/team')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    from .errors import WorkflowError

    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, WorkflowError):
            app.logger.info('%s %s: %s', request.path, e.kind, e.detail)
            return {'error': e.to_dict()}, e.status_code
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                    'kind': 'http_error',
                }
            }
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        if SessionLocal is not None:
            SessionLocal.rollback()
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error',
                'kind': 'internal_error',
            }
        }, 500

    from .openapi_builder import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        # Lightweight HTML referencing Redoc CDN (no local install) for quick browsing
        return (
            "<!DOCTYPE html><html><head><title>RobotCare API Docs</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    @app.cli.group('robotcare')
    def robotcare_cli():
        """RobotCare maintenance commands."""

    @robotcare_cli.command('dispatch-notifications')
    @click.option('--limit', default=50, show_default=True, help='Maximum notifications to attempt')
    def dispatch_notifications(limit):
        """Retry pending/failed notifications from the outbox."""
        result = app.extensions['robotcare.notifications'].dispatch_pending(get_db(), limit=limit)
        click.echo(f"attempted={result['attempted']} sent={result['sent']} failed={result['failed']}")

    return app


def get_db():
    return SessionLocal()
