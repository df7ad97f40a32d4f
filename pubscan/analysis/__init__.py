from ..capture.models import CaptureResult
from .base import VENDOR_FLAGS, Analysis, Analyzer
from .cookies import analyze_cookies
from .html_only import HtmlHeuristicAnalyzer
from .network import NetworkAnalyzer


def analyzer_for(capture: CaptureResult) -> Analyzer:
    """Measured analysis for browser captures, heuristic for static ones."""
    if capture.measured:
        return NetworkAnalyzer()
    return HtmlHeuristicAnalyzer()


__all__ = [
    'VENDOR_FLAGS',
    'Analysis',
    'Analyzer',
    'HtmlHeuristicAnalyzer',
    'NetworkAnalyzer',
    'analyze_cookies',
    'analyzer_for',
]
