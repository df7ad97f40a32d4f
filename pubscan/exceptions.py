"""Custom exceptions for the publisher scanner.

Provides structured error handling with categorized exceptions
and standardized error response format.
"""

import re
import socket
from typing import Optional, Dict, Any, Union


class PubScanException(Exception):
    """Base exception for all scanner errors.

    Provides structured error response format with:
    - error_code: Machine-readable error identifier
    - message: Human-readable error description
    - details: Optional additional context
    """

    error_code: str = "PUBSCAN_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Return structured error response dict."""
        response = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response


# ============ Validation Errors (4xx) ============


class ValidationError(PubScanException):
    """Input validation failed."""

    error_code = "VALIDATION_ERROR"
    status_code = 400


class InvalidDomainError(ValidationError):
    """Invalid domain format or blocked domain."""

    error_code = "INVALID_DOMAIN"

    def __init__(self, domain: str, reason: str = "Invalid domain format"):
        super().__init__(f"{reason}: {domain}", details={"domain": domain, "reason": reason})


class EmptyDomainListError(ValidationError):
    """No usable domain left after canonicalization."""

    error_code = "NO_DOMAINS"

    def __init__(self):
        super().__init__("No domains provided")


class TooManyDomainsError(ValidationError):
    """More unique domains than a single scan accepts."""

    error_code = "TOO_MANY_DOMAINS"

    def __init__(self, count: int, limit: int):
        super().__init__(
            f"Maximum {limit} domains allowed per scan (got {count})",
            details={"count": count, "limit": limit},
        )


class JobNotFoundError(PubScanException):
    """Unknown scan job id."""

    error_code = "SCAN_NOT_FOUND"
    status_code = 404

    def __init__(self, job_id: str):
        super().__init__(f"Scan not found: {job_id}", details={"scan_id": job_id})


# ============ Scan Errors ============


class ScanError(PubScanException):
    """Base class for scan-related errors."""

    error_code = "SCAN_ERROR"


class CaptureTimeoutError(ScanError):
    """A capture strategy ran out of time."""

    error_code = "CAPTURE_TIMEOUT"
    status_code = 504

    def __init__(self, domain: str, timeout_seconds: float):
        super().__init__(
            f"Capture timed out for {domain} after {timeout_seconds}s",
            details={"domain": domain, "timeout_seconds": timeout_seconds},
        )


class CaptureFailedError(ScanError):
    """Every capture strategy failed for a domain."""

    error_code = "CAPTURE_FAILED"
    status_code = 502

    def __init__(self, domain: str, reason: str):
        super().__init__(f"Capture failed for {domain}: {reason}", details={"domain": domain, "reason": reason})
        self.reason = reason


# ============ Database Errors ============


class DatabaseError(PubScanException):
    """Database operation failed."""

    error_code = "DATABASE_ERROR"
    status_code = 503


# ============ Configuration Errors ============


class ConfigurationError(PubScanException):
    """Configuration issue."""

    error_code = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, message: str):
        super().__init__(f"Configuration error for {setting}: {message}", details={"setting": setting})


# ============ Utility Functions ============

_HTTP_STATUS_RE = re.compile(r'\bhttp \d{3}\b')


def error_response(exception: PubScanException) -> tuple:
    """Create Flask JSON response from exception.

    Returns:
        Tuple of (response_dict, status_code) ready for jsonify
    """
    return exception.to_dict(), exception.status_code


def classify_error(err: Union[Exception, str]) -> str:
    """Classify an error into a category for logs and metrics.

    Returns:
        One of: timeout, dns, ssl, conn, http, other
    """
    if isinstance(err, CaptureTimeoutError):
        return 'timeout'
    msg = str(err).lower()
    if 'timeout' in msg or 'timed out' in msg:
        return 'timeout'
    if isinstance(err, socket.gaierror) or 'nxdomain' in msg or 'name or service not known' in msg \
            or 'name resolution' in msg or 'err_name_not_resolved' in msg:
        return 'dns'
    if 'ssl' in msg or 'certificate' in msg:
        return 'ssl'
    if 'connection refused' in msg or 'connection reset' in msg or 'network is unreachable' in msg \
            or 'max retries exceeded' in msg:
        return 'conn'
    if _HTTP_STATUS_RE.search(msg):
        return 'http'
    return 'other'
