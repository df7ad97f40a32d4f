"""Scan job lifecycle.

``start_scan`` validates the domain list, creates the job record and hands the
per-domain loop to the job queue. ``run_job`` processes domains one at a time:
traffic lookup, provider rate-limit delay, capture, analysis, scoring, and an
incremental result write. A failing domain becomes a failed row; it never
aborts the batch.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import metrics
from .analysis import Analysis, analyzer_for
from .capture import SCAN_METHOD_NONE, SiteCaptureAdapter
from .exceptions import (
    DatabaseError,
    EmptyDomainListError,
    InvalidDomainError,
    PubScanException,
    TooManyDomainsError,
    classify_error,
)
from .job_queue import STATUS_COMPLETED, STATUS_FAILED, STATUS_PROCESSING, ScanJobQueue, generate_job_id
from .policy import DEFAULT_POLICY, ScoringPolicy
from .scoring import Scores, neutral_scores, score
from .traffic import TrafficEstimate, TrafficEstimator
from .utils.domain import dedupe_domains, validate_domain
from .vendors import VendorCatalog, default_catalog

_LOG = logging.getLogger('pubscan.orchestrator')

DEFAULT_MAX_DOMAINS = 20
DEFAULT_RANK_DELAY_S = 1.1

# Columns kept when the full row cannot be written
MINIMAL_RESULT_COLUMNS = (
    'scan_id', 'seq', 'domain', 'status', 'error_message', 'scan_method',
    'total_cookies', 'first_party_cookies', 'third_party_cookies',
    'addressability_gap_pct', 'estimated_safari_loss_pct',
    'id_bloat_severity', 'privacy_risk_level', 'competitive_positioning',
)

CONTEXT_KEYS = ('monthly_impressions', 'publisher_vertical', 'owned_domains_count')


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def clean_context(context: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Keep only the known annotation keys; None when nothing is left."""
    if not isinstance(context, dict):
        return None
    out = {k: context[k] for k in CONTEXT_KEYS if context.get(k) is not None}
    return out or None


def prepare_domains(domains: Iterable[str], max_domains: int = DEFAULT_MAX_DOMAINS) -> List[str]:
    """Canonicalize, validate and dedupe; raise before any job exists.

    Duplicates are judged on the validated (IDNA) form, so a unicode name and
    its punycode spelling count once.
    """
    candidates = dedupe_domains(domains or [])
    if not candidates:
        raise EmptyDomainListError()
    out: List[str] = []
    for d in candidates:
        try:
            valid = validate_domain(d)
        except ValueError as e:
            raise InvalidDomainError(d, str(e)) from e
        if valid not in out:
            out.append(valid)
    if len(out) > max_domains:
        raise TooManyDomainsError(len(out), max_domains)
    return out


def build_result_row(job_id: str, seq: int, domain: str, analysis: Analysis, scores: Scores,
                     traffic: TrafficEstimate) -> Dict[str, Any]:
    c = analysis.cookies
    row = {
        'scan_id': job_id,
        'seq': seq,
        'domain': domain,
        'status': 'success',
        'error_message': analysis.note,
        'scan_method': analysis.scan_method,
        'total_cookies': c.total,
        'first_party_cookies': c.first_party,
        'third_party_cookies': c.third_party,
        'session_cookies': c.session,
        'persistent_cookies': c.persistent,
        'max_cookie_duration_days': c.max_duration_days,
        'safari_blocked_cookies': c.safari_blocked,
        'safari_capped_cookies': c.safari_capped,
        'has_google_analytics': analysis.has_google_analytics,
        'has_gtm': analysis.has_gtm,
        'has_gcm': analysis.has_gcm,
        'has_meta_pixel': analysis.has_meta_pixel,
        'has_meta_capi': analysis.has_meta_capi,
        'has_ttd': analysis.has_ttd,
        'has_liveramp': analysis.has_liveramp,
        'has_id5': analysis.has_id5,
        'has_criteo': analysis.has_criteo,
        'has_ppid': analysis.has_ppid,
        'has_prebid': analysis.has_prebid,
        'has_header_bidding': analysis.has_header_bidding,
        'has_conversion_api': analysis.has_conversion_api,
        'detected_ssps': list(analysis.detected_ssps),
        'cmp_vendor': analysis.cmp_vendor,
        'tcf_compliant': analysis.tcf_compliant,
        'loads_pre_consent': analysis.loads_pre_consent,
        'cookies_raw': analysis.cookies_raw,
        'vendors_raw': analysis.vendors_raw(),
        'network_requests_summary': analysis.network_requests_summary(),
    }
    row.update(scores.to_dict())
    row.update(traffic.to_row())
    return row


def build_failed_row(job_id: str, seq: int, domain: str, error: str, traffic: TrafficEstimate,
                     policy: ScoringPolicy = DEFAULT_POLICY) -> Dict[str, Any]:
    row = {
        'scan_id': job_id,
        'seq': seq,
        'domain': domain,
        'status': 'failed',
        'error_message': error,
        'scan_method': SCAN_METHOD_NONE,
        'total_cookies': 0,
        'first_party_cookies': 0,
        'third_party_cookies': 0,
        'detected_ssps': [],
        'cookies_raw': [],
        'vendors_raw': {},
        'network_requests_summary': {'total_requests': 0, 'third_party_domains': 0,
                                     'ad_tech_requests': 0, 'total_vendors': 0},
    }
    row.update(neutral_scores(policy).to_dict())
    row.update(traffic.to_row())
    return row


class ScanOrchestrator:
    def __init__(self, store, queue: ScanJobQueue, capture_adapter: Optional[SiteCaptureAdapter] = None,
                 traffic_estimator: Optional[TrafficEstimator] = None,
                 catalog: Optional[VendorCatalog] = None, policy: ScoringPolicy = DEFAULT_POLICY,
                 sleep: Callable[[float], None] = time.sleep, rate_limit_delay: Optional[float] = None,
                 max_domains: Optional[int] = None):
        self.store = store
        self.queue = queue
        self.catalog = catalog or default_catalog()
        self.capture_adapter = capture_adapter or SiteCaptureAdapter.from_env(self.catalog)
        self.traffic_estimator = traffic_estimator or TrafficEstimator()
        self.policy = policy
        self._sleep = sleep
        self.rate_limit_delay = (rate_limit_delay if rate_limit_delay is not None
                                 else _env_float('PUBSCAN_RANK_DELAY_S', DEFAULT_RANK_DELAY_S))
        self.max_domains = max_domains if max_domains is not None else _env_int('PUBSCAN_MAX_DOMAINS',
                                                                               DEFAULT_MAX_DOMAINS)
        self.queue.set_failure_handler(self._mark_failed)

    # ---- submission ----

    def start_scan(self, domains: Iterable[str], context: Optional[Dict[str, Any]] = None) -> str:
        clean = prepare_domains(domains, self.max_domains)
        job_id = generate_job_id()
        now = time.time()
        job = {
            'id': job_id,
            'status': STATUS_PROCESSING,
            'total_domains': len(clean),
            'completed_domains': 0,
            'domains': clean,
            'context': clean_context(context),
            'error': None,
            'created_at': now,
            'updated_at': now,
            'finished_at': None,
        }
        try:
            self.store.create_job(job)
        except PubScanException:
            raise
        except Exception as e:
            raise DatabaseError(f'failed to create scan record: {e}') from e
        self.queue.submit(job_id, self.run_job, job_id, clean)
        metrics.record_job_started()
        _LOG.info('scan started id=%s domains=%d', job_id, len(clean))
        return job_id

    def _mark_failed(self, job_id: str, exc: Exception):
        metrics.record_job_finished(STATUS_FAILED)
        self.store.update_job(job_id, status=STATUS_FAILED, error=str(exc), finished_at=time.time())

    # ---- processing ----

    def run_job(self, job_id: str, domains: List[str]):
        # marks the job live; a store outage here fails the whole job
        self.store.update_job(job_id, status=STATUS_PROCESSING)
        completed = 0
        for seq, domain in enumerate(domains, start=1):
            self._process_domain(job_id, seq, domain)
            completed += 1
            try:
                self.store.update_job(job_id, completed_domains=completed)
            except Exception as e:
                _LOG.error('progress update failed id=%s completed=%d err=%s', job_id, completed, e)
        self.store.update_job(job_id, status=STATUS_COMPLETED, finished_at=time.time())
        metrics.record_job_finished(STATUS_COMPLETED)
        _LOG.info('scan completed id=%s domains=%d', job_id, completed)

    def _process_domain(self, job_id: str, seq: int, domain: str):
        _LOG.info('processing id=%s seq=%d domain=%s', job_id, seq, domain)
        try:
            traffic = self.traffic_estimator.estimate(domain)
        except Exception as e:
            _LOG.warning('traffic lookup raised id=%s domain=%s err=%s', job_id, domain, e)
            traffic = TrafficEstimate()
        self._sleep(self.rate_limit_delay)
        try:
            capture = self.capture_adapter.capture(domain)
            analysis = analyzer_for(capture).analyze(capture, self.catalog)
            scores = score(analysis, self.policy)
            row = build_result_row(job_id, seq, domain, analysis, scores, traffic)
            self._write_result(row)
        except Exception as e:
            _LOG.warning('domain failed id=%s domain=%s type=%s err=%s', job_id, domain, classify_error(e), e)
            row = build_failed_row(job_id, seq, domain, getattr(e, 'message', None) or str(e), traffic,
                                   self.policy)
            self._write_result(row)
        metrics.record_domain_result(row['status'], row.get('scan_method'))

    def _write_result(self, row: Dict[str, Any]):
        """Full write, then one minimal-column retry. Never raises."""
        try:
            self.store.insert_result(row)
            return
        except Exception as e:
            _LOG.error('result insert failed id=%s domain=%s err=%s; retrying minimal columns',
                       row['scan_id'], row['domain'], e)
            minimal = {k: row.get(k) for k in MINIMAL_RESULT_COLUMNS}
            minimal['error_message'] = f'Insert failed: {e}'
        try:
            self.store.insert_result(minimal)
            metrics.record_write_fallback('ok')
        except Exception as e2:
            metrics.record_write_fallback('failed')
            _LOG.error('minimal result insert failed id=%s domain=%s err=%s', row['scan_id'], row['domain'], e2)
