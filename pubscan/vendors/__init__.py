from .catalog import (
    AD_TECH_HOSTS,
    CMP_PATTERNS,
    DSP_PATTERNS,
    SSP_PATTERNS,
    UNIVERSAL_ID_PATTERNS,
    VendorCatalog,
    VendorPattern,
    default_catalog,
)

__all__ = [
    'AD_TECH_HOSTS',
    'CMP_PATTERNS',
    'DSP_PATTERNS',
    'SSP_PATTERNS',
    'UNIVERSAL_ID_PATTERNS',
    'VendorCatalog',
    'VendorPattern',
    'default_catalog',
]
