"""Identity / ad-tech vendor signatures.

Three independent catalogs (SSP, DSP, Universal ID). Each entry lists cookie
name substrings and domain substrings; matching is case-insensitive substring
containment. A cookie or request host may match several entries.

``AD_TECH_HOSTS`` is the fixed hostname list used to tag live network requests
during dynamic capture.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class VendorPattern:
    key: str
    name: str
    cookies: Tuple[str, ...] = ()
    domains: Tuple[str, ...] = ()
    # Dedicated boolean flag set on the result when this vendor matches
    flag: Optional[str] = None

    def matches_cookie(self, cookie_name: str) -> bool:
        n = (cookie_name or '').lower()
        return bool(n) and any(p.lower() in n for p in self.cookies)

    def matches_domain(self, host: str) -> bool:
        h = (host or '').lower()
        return bool(h) and any(p.lower() in h for p in self.domains)


SSP_PATTERNS: Tuple[VendorPattern, ...] = (
    VendorPattern('magnite', 'Magnite/Rubicon',
                  ('khaos', 'ruid', 'audit', 'ses', 'vis', 'ruids'),
                  ('rubiconproject.com', 'tremorhub.com', 'magnite.com')),
    VendorPattern('pubmatic', 'PubMatic',
                  ('KADUSERCOOKIE', 'KRTBCOOKIE', 'PUBRETARGET', 'PugT', 'PUBMDCID'),
                  ('pubmatic.com', 'ads.pubmatic.com')),
    VendorPattern('openx', 'OpenX',
                  ('i', 'pd', 'OX_dnt', 'oxc', 'OX_plg'),
                  ('openx.net', 'openx.com', 'servedbyopenx.com')),
    VendorPattern('triplelift', 'TripleLift',
                  ('TLUID', 'TLUIDP', 'tltuid', 'tlThird'),
                  ('3lift.com', 'triplelift.com')),
    VendorPattern('indexExchange', 'Index Exchange',
                  ('CMPS', 'CMST', 'CMRUM3', 'CMPRO'),
                  ('casalemedia.com', 'indexexchange.com')),
    VendorPattern('sharethrough', 'Sharethrough',
                  ('stx_user_id', 'STR_UID'),
                  ('sharethrough.com',)),
    VendorPattern('sovrn', 'Sovrn',
                  ('ljt_reader', 'ljt_c'),
                  ('sovrn.com', 'lijit.com')),
    VendorPattern('gumgum', 'GumGum', ('__gumgum_tcl',), ('gumgum.com',)),
    VendorPattern('yieldmo', 'Yieldmo', ('ymuid', 'ymo'), ('yieldmo.com',)),
    VendorPattern('unruly', 'Unruly', ('unruly_data',), ('unruly.co', 'unrulygroup.com')),
    VendorPattern('googleAds', 'Google Ad Manager',
                  ('IDE', 'DSID', '__gads', '__gpi', '__gac'),
                  ('doubleclick.net', 'googletag.net', 'googleadservices.com', 'google-analytics.com')),
)

DSP_PATTERNS: Tuple[VendorPattern, ...] = (
    VendorPattern('appnexus', 'AppNexus/Xandr',
                  ('uuid2', 'anj', 'XANDR_PANID', 'icu', 'anj_uuid'),
                  ('adnxs.com', 'xandr.com', 'appnexus.com')),
    VendorPattern('tradeDesk', 'The Trade Desk',
                  ('TDID', 'TTDOptOutOfDataSale', 'TTDOptOut'),
                  ('adsrvr.org', 'thetradedesk.com'), flag='ttd'),
    VendorPattern('criteo', 'Criteo',
                  ('uid', 'dis', 'optout', 'cto_bundle', 'cto_tld_test'),
                  ('criteo.com', 'criteo.net'), flag='criteo'),
    VendorPattern('mediamath', 'MediaMath',
                  ('uuidc', 'mt_mop', 'mt_misc', 'uuid', 'mt_svcs'),
                  ('mathtag.com', 'mediamath.com')),
    VendorPattern('dv360', 'DV360/Google',
                  ('IDE', 'ar_debug', 'wd', 'NID', 'test_cookie'),
                  ('doubleclick.net', 'googlesyndication.com')),
    VendorPattern('beeswax', 'Beeswax', ('bwid',), ('beeswax.com',)),
    VendorPattern('amobee', 'Amobee', ('aid', 'TId'), ('amobee.com', 'turn.com')),
    VendorPattern('amazon', 'Amazon DSP',
                  ('ad-id', 'ad-privacy', 'amazon-adsystem'),
                  ('amazon-adsystem.com', 'amazonadserver.com')),
)

UNIVERSAL_ID_PATTERNS: Tuple[VendorPattern, ...] = (
    VendorPattern('liveramp', 'LiveRamp ATS',
                  ('pxrc', 'rlas3', 'ats', 'pb_li_oids', '_lr_env_src_ats'),
                  ('rlcdn.com', 'liveramp.com', 'pippio.com'), flag='liveramp'),
    VendorPattern('id5', 'ID5',
                  ('id5id', 'id5id_nb', 'id5id.1st', 'id5.1st'),
                  ('id5-sync.com', 'id5.io'), flag='id5'),
    # UID2 lives in localStorage, so only its API hosts are observable here
    VendorPattern('uid2', 'UID2/EUID', (), ('uidapi.com', 'unifiedid.com')),
    VendorPattern('thirtyThreeAcross', '33Across',
                  ('33acrossId', '33x_lexId', '33x', '33xd'),
                  ('33across.com', '33across.io')),
    VendorPattern('zeotap', 'Zeotap', ('zeotap_id', 'zeuid'), ('zeotap.com',)),
    VendorPattern('lotame', 'Lotame Panorama',
                  ('panorama_id', 'crwdcntrl.net', 'lotcc'),
                  ('crwdcntrl.net', 'lotame.com')),
    VendorPattern('sharedId', 'Shared ID', ('pubcid', '_pubcid', '_sharedid'), ()),
    VendorPattern('fabrick', 'Fabrick ID', ('fabrickId',), ('neustar.biz', 'fabrick.io')),
    VendorPattern('merkle', 'Merkle ID', ('merkid', '_merkid'), ('merkleinc.com',)),
    VendorPattern('netId', 'NetID', ('netid', 'netId'), ('netid.de',)),
)

# Request tagging during dynamic capture: (tag, hostname/url substrings)
AD_TECH_HOSTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('google_analytics', ('google-analytics.com', 'googletagmanager.com', 'analytics.google.com')),
    ('meta_pixel', ('facebook.net', 'facebook.com/tr', 'connect.facebook')),
    ('ttd', ('thetradedesk.com', 'adsrvr.org')),
    ('liveramp', ('rlcdn.com', 'liveramp.com')),
    ('id5', ('id5-sync.com',)),
    ('criteo', ('criteo.net', 'criteo.com')),
    ('prebid', ('prebid.org', 'rubiconproject.com', 'pubmatic.com', 'openx.net', 'adnxs.com')),
    ('gam', ('doubleclick.net', 'googlesyndication.com', 'googleadservices.com')),
)

# Consent-management platforms, matched against HTML in order
CMP_PATTERNS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('OneTrust', ('onetrust', 'optanon')),
    ('Cookiebot', ('cookiebot',)),
    ('Quantcast', ('quantcast',)),
    ('Sourcepoint', ('sourcepoint',)),
    ('Didomi', ('didomi',)),
    ('TrustArc', ('trustarc', 'truste')),
    ('Usercentrics', ('usercentrics',)),
    ('Consentmanager', ('consentmanager.net',)),
)


@dataclass(frozen=True)
class VendorCatalog:
    ssp: Tuple[VendorPattern, ...] = SSP_PATTERNS
    dsp: Tuple[VendorPattern, ...] = DSP_PATTERNS
    universal_id: Tuple[VendorPattern, ...] = UNIVERSAL_ID_PATTERNS
    ad_tech_hosts: Tuple[Tuple[str, Tuple[str, ...]], ...] = AD_TECH_HOSTS
    cmp: Tuple[Tuple[str, Tuple[str, ...]], ...] = CMP_PATTERNS

    def groups(self) -> Iterator[Tuple[str, Tuple[VendorPattern, ...]]]:
        yield 'ssp', self.ssp
        yield 'dsp', self.dsp
        yield 'universal_id', self.universal_id

    def tag_request(self, url: str, host: str) -> Optional[str]:
        """Return the ad-tech tag of a request, first matching entry wins."""
        u = (url or '').lower()
        h = (host or '').lower()
        for tag, needles in self.ad_tech_hosts:
            if any(n in h or n in u for n in needles):
                return tag
        return None

    def match(self, cookie_names: Iterable[str], hosts: Iterable[str]) -> List[VendorPattern]:
        """Every catalog entry matched by any cookie name or host.

        Entries come back in catalog order (SSP, DSP, Universal ID). The same
        vendor can appear in two catalogs; callers dedupe by display name.
        """
        names = [n for n in cookie_names if n]
        host_list = [h for h in hosts if h]
        found: List[VendorPattern] = []
        for _group, patterns in self.groups():
            for pattern in patterns:
                if any(pattern.matches_domain(h) for h in host_list) or \
                        any(pattern.matches_cookie(n) for n in names):
                    found.append(pattern)
        return found


_DEFAULT_CATALOG: Optional[VendorCatalog] = None


def default_catalog() -> VendorCatalog:
    """Process-wide catalog instance, built on first use."""
    global _DEFAULT_CATALOG
    if _DEFAULT_CATALOG is None:
        _DEFAULT_CATALOG = VendorCatalog()
    return _DEFAULT_CATALOG
