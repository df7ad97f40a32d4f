import os
import logging
from flask import Flask, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from .exceptions import PubScanException, error_response

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def _configure_logging():
    level_name = os.environ.get('PUBSCAN_LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # Optional rotating file handler for persistent logs (useful in production)
    log_file = os.environ.get('PUBSCAN_LOG_FILE')
    if log_file:
        from logging.handlers import RotatingFileHandler
        root = logging.getLogger()
        if not any(isinstance(h, RotatingFileHandler) and getattr(h, 'baseFilename', None) == os.path.abspath(log_file)
                   for h in root.handlers):
            try:
                max_bytes = int(os.environ.get('PUBSCAN_LOG_MAX_BYTES', str(5 * 1024 * 1024)))
                backup = int(os.environ.get('PUBSCAN_LOG_BACKUP_COUNT', '5'))
            except ValueError:
                max_bytes, backup = 5 * 1024 * 1024, 5
            try:
                fh = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup)
            except OSError as e:
                logging.getLogger(__name__).warning('failed attaching RotatingFileHandler for %s err=%s', log_file, e)
            else:
                fh.setLevel(level)
                fh.setFormatter(logging.Formatter(LOG_FORMAT))
                root.addHandler(fh)
                logging.getLogger(__name__).info(
                    'RotatingFileHandler attached path=%s max_bytes=%d backups=%d', log_file, max_bytes, backup)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger(__name__).info('Logging initialized at level %s', level_name)


def create_app():
    app = Flask(__name__)
    _configure_logging()
    app.config['PUBSCAN_VERSION'] = os.environ.get('PUBSCAN_VERSION', '0.1.0')

    # Rate limiting configuration
    default_rate = os.environ.get('PUBSCAN_RATE_LIMIT', '60 per minute')
    # Use Redis storage for limiter when provided, otherwise fall back to in-memory storage
    redis_url = os.environ.get('PUBSCAN_REDIS_URL')
    storage_uri = redis_url if redis_url else 'memory://'
    limiter = Limiter(key_func=get_remote_address, app=app, default_limits=[default_rate], storage_uri=storage_uri)
    # Expose limiter for blueprints to use specific limits
    app.extensions['limiter'] = limiter

    from . import db as _db
    from .job_queue import init_job_queue
    from .orchestrator import ScanOrchestrator
    from .policy import load_policy

    store = _db.get_store()
    try:
        store.ensure_schema()
    except PubScanException as db_ex:
        # scans will answer 503 until the database is reachable
        logging.getLogger(__name__).error('Failed ensuring DB schema: %s', db_ex)
    queue = init_job_queue()
    orchestrator = ScanOrchestrator(store, queue, policy=load_policy())
    app.extensions['pubscan_store'] = store
    app.extensions['pubscan_queue'] = queue
    app.extensions['pubscan_orchestrator'] = orchestrator
    logging.getLogger(__name__).info(
        'pubscan ready store=%s browser=%s policy=%s',
        store.kind, orchestrator.capture_adapter.browser_configured, orchestrator.policy.version)

    @app.errorhandler(PubScanException)
    def _handle_pubscan_error(exc):
        body, status = error_response(exc)
        if status >= 500:
            logging.getLogger('pubscan.scan').error('%s: %s', exc.error_code, exc.message)
        return jsonify(body), status

    from .routes.scan import bp as scan_bp
    from .routes.system import system_bp
    app.register_blueprint(scan_bp)
    app.register_blueprint(system_bp)
    return app
