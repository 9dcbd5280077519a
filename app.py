import logging
import uuid

import click
import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, g, jsonify, request
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from werkzeug.exceptions import HTTPException

from config import Settings, settings as default_settings
from cyclic_events import run_reconciliation
from definitions import Base, User, ROLE_ADMIN
from errors import LibraryError
from helpers import display_name_from_email
from routes import routes_blueprint
from workflow import Identity

logger = logging.getLogger(__name__)

IDENTITY_HEADER = 'X-User-Id'
EMAIL_HEADER = 'X-User-Email'


def start_scheduler(session_factory, settings):
    timezone = pytz.timezone(settings.scheduler_timezone)
    scheduler = BackgroundScheduler(daemon=True, timezone=timezone)
    scheduler.add_job(run_reconciliation, 'cron', hour=settings.reconcile_hour, minute=0,
                      args=[session_factory], timezone=timezone, id='reconcile_availability')
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler


def create_app(settings=None, start_jobs=None):
    settings = settings or default_settings
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    # Create engine and session factory
    engine = create_engine(settings.database_url, echo=settings.database_echo)
    Session = sessionmaker(bind=engine)
    Base.metadata.create_all(engine)
    for table_name in Base.metadata.tables:
        logger.debug("Loaded table: %s", table_name)

    # Flask application setup
    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.config['SETTINGS'] = settings
    app.config['ENGINE'] = engine
    app.config['SESSION_FACTORY'] = Session

    @app.before_request
    def create_session():
        g.db = Session()
        user_id = (request.headers.get(IDENTITY_HEADER) or '').strip()
        email = (request.headers.get(EMAIL_HEADER) or '').strip()
        g.identity = Identity(user_id, email) if user_id else None

    @app.teardown_request
    def close_session(exception=None):
        db = g.pop('db', None)
        if db is not None:
            db.close()

    @app.errorhandler(LibraryError)
    def handle_library_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db = g.get('db')
        if db is not None:
            db.rollback()
        logger.error("Database error on %s %s: %s", request.method, request.path, error)
        return jsonify({'error': 'Database error: {}'.format(error)}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.cli.command('create-admin')
    @click.argument('email')
    @click.option('--name', default=None, help='Display name, defaults to the email local part.')
    @click.option('--user-id', default=None, help='Identity id issued by the identity provider.')
    def create_admin(email, name, user_id):
        """Create an admin user, or promote the existing user with EMAIL."""
        db = Session()
        try:
            user = db.query(User).filter(User.email == email).first()
            if user is None:
                user = User(id=user_id or str(uuid.uuid4()), email=email,
                            name=name or display_name_from_email(email))
                db.add(user)
            user.role = ROLE_ADMIN
            db.commit()
            click.echo('{} is now an admin ({})'.format(user.email, user.id))
        finally:
            db.close()

    app.register_blueprint(routes_blueprint)

    if start_jobs is None:
        start_jobs = settings.scheduler_enabled
    if start_jobs:
        app.config['SCHEDULER'] = start_scheduler(Session, settings)

    return app


if __name__ == '__main__':
    settings = Settings()
    create_app(settings).run(debug=settings.debug, threaded=True)  # Run Flask with threading enabled
