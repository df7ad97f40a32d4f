import os, time, json, logging
import threading
from urllib.parse import quote as _urlquote
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from .exceptions import ConfigurationError, DatabaseError

_LOG = logging.getLogger('pubscan.db')

JOB_COLUMNS = ('id', 'status', 'total_domains', 'completed_domains', 'domains', 'context',
               'error', 'created_at', 'updated_at', 'finished_at')
JOB_JSON_COLUMNS = {'domains', 'context'}
JOB_TIME_COLUMNS = {'created_at', 'updated_at', 'finished_at'}

# Result column -> SQL type. Insert statements are built from the keys present
# on a row so the minimal fallback write reuses the same code path.
RESULT_COLUMNS: Dict[str, str] = {
    'scan_id': 'TEXT NOT NULL REFERENCES scan_jobs(id) ON DELETE CASCADE',
    'seq': 'INTEGER NOT NULL',
    'domain': 'TEXT NOT NULL',
    'status': 'TEXT NOT NULL',
    'error_message': 'TEXT',
    'scan_method': 'TEXT',
    'total_cookies': 'INTEGER',
    'first_party_cookies': 'INTEGER',
    'third_party_cookies': 'INTEGER',
    'session_cookies': 'INTEGER',
    'persistent_cookies': 'INTEGER',
    'max_cookie_duration_days': 'INTEGER',
    'safari_blocked_cookies': 'INTEGER',
    'safari_capped_cookies': 'INTEGER',
    'has_google_analytics': 'BOOLEAN',
    'has_gtm': 'BOOLEAN',
    'has_gcm': 'BOOLEAN',
    'has_meta_pixel': 'BOOLEAN',
    'has_meta_capi': 'BOOLEAN',
    'has_ttd': 'BOOLEAN',
    'has_liveramp': 'BOOLEAN',
    'has_id5': 'BOOLEAN',
    'has_criteo': 'BOOLEAN',
    'has_ppid': 'BOOLEAN',
    'has_prebid': 'BOOLEAN',
    'has_header_bidding': 'BOOLEAN',
    'has_conversion_api': 'BOOLEAN',
    'detected_ssps': 'JSONB',
    'cmp_vendor': 'TEXT',
    'tcf_compliant': 'BOOLEAN',
    'loads_pre_consent': 'BOOLEAN',
    'addressability_gap_pct': 'DOUBLE PRECISION',
    'estimated_safari_loss_pct': 'DOUBLE PRECISION',
    'id_bloat_severity': 'TEXT',
    'privacy_risk_level': 'TEXT',
    'competitive_positioning': 'TEXT',
    'scoring_policy_version': 'TEXT',
    'tranco_rank': 'INTEGER',
    'estimated_monthly_pageviews': 'BIGINT',
    'estimated_monthly_impressions': 'BIGINT',
    'traffic_confidence': 'TEXT',
    'tranco_rank_history': 'JSONB',
    'rank_trend': 'TEXT',
    'rank_change_30d': 'INTEGER',
    'cookies_raw': 'JSONB',
    'vendors_raw': 'JSONB',
    'network_requests_summary': 'JSONB',
}
RESULT_JSON_COLUMNS = {k for k, v in RESULT_COLUMNS.items() if v == 'JSONB'}

SCHEMA_STATEMENTS = [
    '''CREATE TABLE IF NOT EXISTS scan_jobs (
        id TEXT PRIMARY KEY,
        status TEXT NOT NULL,
        total_domains INTEGER NOT NULL,
        completed_domains INTEGER NOT NULL DEFAULT 0,
        domains JSONB NOT NULL,
        context JSONB,
        error TEXT,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        finished_at TIMESTAMPTZ
    );''',
    'CREATE TABLE IF NOT EXISTS domain_results (\n        id BIGSERIAL PRIMARY KEY,\n        '
    + ',\n        '.join(f'{name} {sql_type}' for name, sql_type in RESULT_COLUMNS.items())
    + ',\n        created_at TIMESTAMPTZ NOT NULL DEFAULT now()\n    );',
    'CREATE INDEX IF NOT EXISTS idx_domain_results_scan_seq ON domain_results(scan_id, seq);',
    # change detection reads the newest rows per domain
    'CREATE INDEX IF NOT EXISTS idx_domain_results_domain_time ON domain_results(domain, created_at DESC);',
]


def build_db_url() -> str:
    """Connection URL from PUBSCAN_DB_URL or the individual PUBSCAN_DB_* pieces."""
    explicit = os.environ.get('PUBSCAN_DB_URL')
    if explicit:
        return explicit
    db_host = os.environ.get('PUBSCAN_DB_HOST', '127.0.0.1')
    db_port = os.environ.get('PUBSCAN_DB_PORT', '5432')
    db_name = os.environ.get('PUBSCAN_DB_NAME', 'pubscan')
    db_user = os.environ.get('PUBSCAN_DB_USER', 'postgres')
    db_pass = os.environ.get('PUBSCAN_DB_PASSWORD')
    if not db_pass:
        raise ConfigurationError('PUBSCAN_DB_PASSWORD',
                                 'not set. Define PUBSCAN_DB_URL or set PUBSCAN_DB_PASSWORD via environment.')
    # URL-encode password to safely handle special characters (@, #, :)
    enc_pass = _urlquote(db_pass, safe='')
    return f'postgresql://{db_user}:{enc_pass}@{db_host}:{db_port}/{db_name}'


def db_disabled() -> bool:
    return os.environ.get('PUBSCAN_DISABLE_DB', '0') == '1'


class MemoryStore:
    """In-process store used when PUBSCAN_DISABLE_DB=1 (tests, local runs)."""

    kind = 'memory'

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, dict] = {}
        self._results: List[dict] = []

    def ensure_schema(self):
        return

    def ping(self) -> bool:
        return True

    def create_job(self, job: dict):
        with self._lock:
            self._jobs[job['id']] = dict(job)

    def update_job(self, job_id: str, **fields):
        fields['updated_at'] = time.time()
        with self._lock:
            if job_id not in self._jobs:
                raise DatabaseError(f'scan job {job_id} does not exist')
            self._jobs[job_id].update(fields)

    def get_job(self, job_id: str) -> Optional[dict]:
        with self._lock:
            job = self._jobs.get(job_id)
            return dict(job) if job else None

    def insert_result(self, row: dict):
        unknown = set(row) - set(RESULT_COLUMNS)
        if unknown:
            raise DatabaseError(f'unknown result columns: {sorted(unknown)}')
        stored = dict(row)
        stored['created_at'] = time.time()
        with self._lock:
            self._results.append(stored)

    def list_results(self, job_id: str, since: int = 0) -> List[dict]:
        with self._lock:
            rows = [dict(r) for r in self._results if r['scan_id'] == job_id and r.get('seq', 0) >= since]
        rows.sort(key=lambda r: r.get('seq', 0))
        return rows

    def recent_results_for_domain(self, domain: str, limit: int = 2, status: str = 'success') -> List[dict]:
        with self._lock:
            rows = [dict(r) for r in self._results if r['domain'] == domain and r.get('status') == status]
        # insertion order breaks created_at ties
        rows = list(reversed(rows))
        rows.sort(key=lambda r: r['created_at'], reverse=True)
        return rows[:limit]


class PostgresStore:
    """PostgreSQL store backed by a psycopg_pool connection pool."""

    kind = 'postgres'

    def __init__(self, db_url: str, pool_size: Optional[int] = None):
        if pool_size is None:
            try:
                pool_size = int(os.environ.get('PUBSCAN_DB_POOL_SIZE', '10'))
            except ValueError:
                pool_size = 10
        self.db_url = db_url
        self._pool = ConnectionPool(conninfo=db_url, min_size=1, max_size=pool_size, open=True)
        _LOG.info('Initialized psycopg connection pool size=%s', pool_size)

    def close(self):
        self._pool.close()

    def pool_stats(self) -> dict:
        st = self._pool.get_stats()
        return {'max_size': self._pool.max_size, 'pool_size': st.get('pool_size'),
                'available': st.get('pool_available')}

    @contextmanager
    def get_conn(self):
        try:
            with self._pool.connection() as conn:
                yield conn
        except psycopg.Error as e:
            raise DatabaseError(f'database operation failed: {e}') from e

    def ensure_schema(self):
        with self.get_conn() as conn:
            with conn.cursor() as cur:
                for stmt in SCHEMA_STATEMENTS:
                    cur.execute(stmt)
        _LOG.info('schema ensured')

    def ping(self) -> bool:
        with self.get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute('SELECT 1')
                cur.fetchone()
        return True

    def create_job(self, job: dict):
        cols = [c for c in JOB_COLUMNS if c in job]
        values = [self._encode(c, job[c], JOB_JSON_COLUMNS) for c in cols]
        placeholders = [self._placeholder(c, JOB_JSON_COLUMNS) for c in cols]
        with self.get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(f'INSERT INTO scan_jobs({", ".join(cols)}) VALUES ({", ".join(placeholders)})', values)
        _LOG.debug('job created id=%s total=%s', job['id'], job.get('total_domains'))

    def update_job(self, job_id: str, **fields):
        fields['updated_at'] = time.time()
        cols = [c for c in JOB_COLUMNS if c in fields and c != 'id']
        assignments = ', '.join(f'{c}={self._placeholder(c, JOB_JSON_COLUMNS)}' for c in cols)
        values = [self._encode(c, fields[c], JOB_JSON_COLUMNS) for c in cols]
        with self.get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(f'UPDATE scan_jobs SET {assignments} WHERE id=%s', values + [job_id])
                if cur.rowcount == 0:
                    raise DatabaseError(f'scan job {job_id} does not exist')

    def get_job(self, job_id: str) -> Optional[dict]:
        select = ', '.join(self._select_expr(c) for c in JOB_COLUMNS)
        with self.get_conn() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f'SELECT {select} FROM scan_jobs WHERE id=%s', (job_id,))
                return cur.fetchone()

    def insert_result(self, row: dict):
        unknown = set(row) - set(RESULT_COLUMNS)
        if unknown:
            raise DatabaseError(f'unknown result columns: {sorted(unknown)}')
        cols = [c for c in RESULT_COLUMNS if c in row]
        values = [self._encode(c, row[c], RESULT_JSON_COLUMNS) for c in cols]
        placeholders = [self._placeholder(c, RESULT_JSON_COLUMNS) for c in cols]
        with self.get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(f'INSERT INTO domain_results({", ".join(cols)}) VALUES ({", ".join(placeholders)})', values)

    def list_results(self, job_id: str, since: int = 0) -> List[dict]:
        select = ', '.join(list(RESULT_COLUMNS) + ['EXTRACT(EPOCH FROM created_at) AS created_at'])
        with self.get_conn() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f'SELECT {select} FROM domain_results WHERE scan_id=%s AND seq >= %s ORDER BY seq',
                            (job_id, since))
                return [self._decode_row(r) for r in cur.fetchall()]

    def recent_results_for_domain(self, domain: str, limit: int = 2, status: str = 'success') -> List[dict]:
        select = ', '.join(list(RESULT_COLUMNS) + ['EXTRACT(EPOCH FROM created_at) AS created_at'])
        with self.get_conn() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f'SELECT {select} FROM domain_results WHERE domain=%s AND status=%s '
                    'ORDER BY created_at DESC, id DESC LIMIT %s',
                    (domain, status, limit))
                return [self._decode_row(r) for r in cur.fetchall()]

    @staticmethod
    def _placeholder(col: str, json_cols: set) -> str:
        if col in json_cols:
            return '%s::jsonb'
        if col in JOB_TIME_COLUMNS:
            return 'to_timestamp(%s)'
        return '%s'

    @staticmethod
    def _encode(col: str, value: Any, json_cols: set) -> Any:
        if col in json_cols and value is not None:
            return json.dumps(value, ensure_ascii=False)
        return value

    @staticmethod
    def _select_expr(col: str) -> str:
        if col in JOB_TIME_COLUMNS:
            return f'EXTRACT(EPOCH FROM {col})::float8 AS {col}'
        return col

    @staticmethod
    def _decode_row(row: dict) -> dict:
        # psycopg returns NUMERIC from EXTRACT; keep epoch floats like the memory store
        if row.get('created_at') is not None:
            row['created_at'] = float(row['created_at'])
        return row


def get_store():
    """Build the configured store: in-memory when PUBSCAN_DISABLE_DB=1, else PostgreSQL."""
    if db_disabled():
        _LOG.warning('PUBSCAN_DISABLE_DB=1 -> database persistence DISABLED (in-memory store)')
        return MemoryStore()
    return PostgresStore(build_db_url())
