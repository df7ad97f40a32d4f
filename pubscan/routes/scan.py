from flask import Blueprint, request, jsonify, current_app
import logging, os

from ..changes import domain_changes
from ..exceptions import InvalidDomainError, JobNotFoundError, ValidationError
from ..summary import summarize
from ..utils.domain import canonicalize_domain, validate_domain

bp = Blueprint('scan', __name__)

_LOG = logging.getLogger('pubscan.scan')

# Custom limit (can be overridden via env)
SCAN_LIMIT = os.environ.get('PUBSCAN_SCAN_RATE_LIMIT', '10 per minute')


def _orchestrator():
    return current_app.extensions['pubscan_orchestrator']


def _store():
    return current_app.extensions['pubscan_store']


def _job_or_404(scan_id: str) -> dict:
    job = _store().get_job(scan_id)
    if not job:
        raise JobNotFoundError(scan_id)
    return job


def _progress(job: dict) -> dict:
    return {
        'id': job['id'],
        'status': job['status'],
        'total_domains': job['total_domains'],
        'completed_domains': job['completed_domains'],
    }


@bp.route('/scan', methods=['POST'])
def _scan_rate_wrapper():
    limiter = current_app.extensions.get('limiter')
    if limiter:
        # apply limit manually (since blueprint-level decorator sometimes loads before limiter)
        @limiter.limit(SCAN_LIMIT)
        def inner():
            return start_scan_impl()
        return inner()
    return start_scan_impl()


def start_scan_impl():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('invalid JSON body')
    domains = data.get('domains')
    if isinstance(domains, str):
        domains = [d for d in domains.replace(',', '\n').splitlines()]
    if not isinstance(domains, list):
        raise ValidationError("'domains' must be a list of strings")
    context = data.get('context')
    if context is not None and not isinstance(context, dict):
        raise ValidationError("'context' must be an object")
    _LOG.info('/scan request raw_count=%d', len(domains))
    scan_id = _orchestrator().start_scan(domains, context)
    job = _store().get_job(scan_id) or {}
    return jsonify({
        'scan_id': scan_id,
        'total_domains': job.get('total_domains'),
        'message': 'Scan started',
    }), 202


@bp.route('/scan/<scan_id>', methods=['GET'])
def scan_status(scan_id):
    return jsonify(_job_or_404(scan_id))


@bp.route('/scan/<scan_id>/results', methods=['GET'])
def scan_results(scan_id):
    job = _job_or_404(scan_id)
    raw_since = request.args.get('since', '0')
    try:
        since = int(raw_since)
    except ValueError:
        raise ValidationError("'since' must be an integer", details={'since': raw_since})
    rows = _store().list_results(scan_id, since=since)
    next_since = max((r.get('seq', 0) for r in rows), default=since - 1) + 1
    return jsonify({
        'job': _progress(job),
        'results': rows,
        'next_since': next_since,
    })


@bp.route('/scan/<scan_id>/summary', methods=['GET'])
def scan_summary(scan_id):
    job = _job_or_404(scan_id)
    rows = _store().list_results(scan_id)
    return jsonify({'job': _progress(job), 'context': job.get('context'), 'summary': summarize(rows)})


@bp.route('/domains/<path:domain>/changes', methods=['GET'])
def changes_for_domain(domain):
    clean = canonicalize_domain(domain)
    try:
        clean = validate_domain(clean)
    except ValueError as e:
        raise InvalidDomainError(domain, str(e))
    return jsonify(domain_changes(_store(), clean))
