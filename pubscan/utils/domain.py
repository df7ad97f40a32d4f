"""Domain validation and extraction utilities.

This module provides functions for:
- Domain/URL parsing and canonicalization
- Domain validation with security checks (SSRF protection)
- Cookie-domain first/third-party matching
"""

import re
from typing import Iterable, List

# ============ Regex Patterns ============

# Domain validation pattern
DOMAIN_RE = re.compile(r"^(?!-)([a-z0-9-]{1,63}\.)+[a-z]{2,63}$")

# IPv4 address pattern (for SSRF blocking)
IPV4_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")


# ============ URL/Host Extraction ============


def extract_host(value: str) -> str:
    """Normalize input that may be a full URL into just the hostname.

    - Strips protocol (http/https)
    - Removes credentials, port, path, query, fragment
    - Lowercases result
    """
    v = (value or "").strip()
    if not v:
        return v
    if v.startswith("//"):
        v = "http:" + v
    if "://" in v:
        v = v.split("://", 1)[1]
    for sep in ["/", "?", "#"]:
        if sep in v:
            v = v.split(sep, 1)[0]
    if "@" in v:
        v = v.split("@", 1)[1]
    if ":" in v:
        v = v.split(":", 1)[0]
    return v.lower().rstrip(".")


def canonicalize_domain(value: str) -> str:
    """Return the canonical form used for job inputs and result rows.

    No scheme, no ``www.`` prefix, no path, no port.
    """
    host = extract_host(value)
    if host.startswith("www."):
        host = host[4:]
    return host


def dedupe_domains(values: Iterable[str]) -> List[str]:
    """Canonicalize and de-duplicate while keeping first-seen order. Blanks are dropped."""
    out: List[str] = []
    seen = set()
    for raw in values:
        d = canonicalize_domain(raw if isinstance(raw, str) else "")
        if not d or d in seen:
            continue
        seen.add(d)
        out.append(d)
    return out


# ============ Domain Validation ============

# Blocked patterns for SSRF protection
BLOCKED_PATTERNS = [
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "::1",
    "10.",
    "192.168.",
    "169.254.",  # Link-local
    "fc00:",  # IPv6 private
    "fe80:",  # IPv6 link-local
    ".internal",
    ".local",
    ".localdomain",
    ".localhost",
] + [f"172.{n}." for n in range(16, 32)]


def validate_domain(raw: str) -> str:
    """Validate and normalize a domain name.

    Raises:
        ValueError: If domain is invalid or blocked
    """
    d = (raw or "").strip().lower().rstrip(".")
    if not d:
        raise ValueError("empty domain")

    if len(d) > 253:
        raise ValueError("domain too long (max 253 chars)")

    dangerous_chars = ["<", ">", '"', "'", "\\", "\n", "\r", "\t", "\x00", " "]
    for c in dangerous_chars:
        if c in d:
            raise ValueError("domain contains invalid characters")

    for pattern in BLOCKED_PATTERNS:
        if d.startswith(pattern) or d.endswith(pattern) or d == pattern.rstrip("."):
            raise ValueError("domain appears to be internal/private (SSRF blocked)")

    if IPV4_RE.match(d):
        raise ValueError("IP addresses not allowed, use domain names")

    if DOMAIN_RE.match(d):
        return d

    # Try IDNA (unicode domains)
    try:
        ascii_d = d.encode("idna").decode("ascii")
    except UnicodeError:
        raise ValueError("invalid domain")

    if not DOMAIN_RE.match(ascii_d):
        raise ValueError("invalid domain")

    return ascii_d


# ============ First/Third Party Matching ============


def is_first_party_cookie(cookie_domain: str, target_domain: str) -> bool:
    """Domain-suffix match of a cookie domain against the scanned site.

    A cookie is first-party when its domain (leading dot stripped) equals the
    target, is a subdomain of it, or is a parent of it with at least two labels.
    A bare TLD such as ``.com`` never counts as a parent.
    """
    cookie = (cookie_domain or "").strip().lower().lstrip(".")
    target = (target_domain or "").strip().lower().lstrip(".")
    if not cookie or not target:
        return False
    if target.startswith("www."):
        target = target[4:]
    if cookie == target:
        return True
    if cookie.endswith("." + target):
        return True
    if target.endswith("." + cookie) and len(cookie.split(".")) >= 2:
        return True
    return False


def is_third_party_host(hostname: str, target_domain: str) -> bool:
    """Request hosts use the same suffix rules as cookies."""
    return not is_first_party_cookie(hostname, target_domain)


__all__ = [
    "DOMAIN_RE",
    "IPV4_RE",
    "BLOCKED_PATTERNS",
    "extract_host",
    "canonicalize_domain",
    "dedupe_domains",
    "validate_domain",
    "is_first_party_cookie",
    "is_third_party_host",
]
