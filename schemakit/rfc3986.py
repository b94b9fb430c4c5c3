"""Regular expressions for URIs and IP addresses, built from the RFC 3986 grammar.

The grammar productions are assembled once at import time. ``create_uri_regex``
and ``create_ip_regex`` combine them into anchored patterns for the string
``uri()`` and ``ip()`` rules.
"""

import re
from functools import lru_cache
from typing import Optional, Sequence

_OR = "|"
_ZERO_PAD = "0?"

_DIGIT = "0-9"
_DIGIT_ONLY = "[" + _DIGIT + "]"
_ALPHA = "a-zA-Z"
_ALPHA_ONLY = "[" + _ALPHA + "]"

# cidr = DIGIT / %x31-32 DIGIT / "3" %x30-32
IPV4_CIDR = _DIGIT_ONLY + _OR + "[1-2]" + _DIGIT_ONLY + _OR + "3" + "[0-2]"

# cidr = DIGIT / %x31-39 DIGIT / "1" %x0-1 DIGIT / "12" %x0-8
IPV6_CIDR = (
    "(?:" + _ZERO_PAD + _ZERO_PAD + _DIGIT_ONLY + _OR + _ZERO_PAD + "[1-9]" + _DIGIT_ONLY
    + _OR + "1" + "[01]" + _DIGIT_ONLY + _OR + "12[0-8])"
)

_HEX_DIGIT = _DIGIT + "A-Fa-f"
_HEX_DIGIT_ONLY = "[" + _HEX_DIGIT + "]"
_UNRESERVED = _ALPHA + _DIGIT + "-\\._~"
_SUB_DELIMS = "!\\$&'\\(\\)\\*\\+,;="
_PCT_ENCODED = "%" + _HEX_DIGIT
_PCHAR = _UNRESERVED + _PCT_ENCODED + _SUB_DELIMS + ":@"
_PCHAR_ONLY = "[" + _PCHAR + "]"

_DEC_OCTET = (
    "(?:" + _ZERO_PAD + _ZERO_PAD + _DIGIT_ONLY + _OR + _ZERO_PAD + "[1-9]" + _DIGIT_ONLY
    + _OR + "1" + _DIGIT_ONLY + _DIGIT_ONLY + _OR + "2" + "[0-4]" + _DIGIT_ONLY
    + _OR + "25" + "[0-5])"
)

IPV4_ADDRESS = "(?:" + _DEC_OCTET + "\\.){3}" + _DEC_OCTET

_H16 = _HEX_DIGIT_ONLY + "{1,4}"
_LS32 = "(?:" + _H16 + ":" + _H16 + "|" + IPV4_ADDRESS + ")"
_IPV6_FORMS = [
    "(?:" + _H16 + ":){6}" + _LS32,
    "::(?:" + _H16 + ":){5}" + _LS32,
    "(?:" + _H16 + ")?::(?:" + _H16 + ":){4}" + _LS32,
    "(?:(?:" + _H16 + ":){0,1}" + _H16 + ")?::(?:" + _H16 + ":){3}" + _LS32,
    "(?:(?:" + _H16 + ":){0,2}" + _H16 + ")?::(?:" + _H16 + ":){2}" + _LS32,
    "(?:(?:" + _H16 + ":){0,3}" + _H16 + ")?::" + _H16 + ":" + _LS32,
    "(?:(?:" + _H16 + ":){0,4}" + _H16 + ")?::" + _LS32,
    "(?:(?:" + _H16 + ":){0,5}" + _H16 + ")?::" + _H16,
    "(?:(?:" + _H16 + ":){0,6}" + _H16 + ")?::",
]
IPV6_ADDRESS = "(?:" + _OR.join(_IPV6_FORMS) + ")"

# IPvFuture = "v" 1*HEXDIG "." 1*( unreserved / sub-delims / ":" )
IPV_FUTURE = "v" + _HEX_DIGIT_ONLY + "+\\.[" + _UNRESERVED + _SUB_DELIMS + ":]+"

# scheme = ALPHA *( ALPHA / DIGIT / "+" / "-" / "." )
SCHEME = _ALPHA_ONLY + "[" + _ALPHA + _DIGIT + "+-\\.]*"

_USERINFO = "[" + _UNRESERVED + _PCT_ENCODED + _SUB_DELIMS + ":]*"
_IP_LITERAL = "\\[(?:" + IPV6_ADDRESS + _OR + IPV_FUTURE + ")\\]"
_REG_NAME = "[" + _UNRESERVED + _PCT_ENCODED + _SUB_DELIMS + "]{0,255}"
_HOST = "(?:" + _IP_LITERAL + _OR + IPV4_ADDRESS + _OR + _REG_NAME + ")"
_PORT = _DIGIT_ONLY + "*"
_AUTHORITY = "(?:" + _USERINFO + "@)?" + _HOST + "(?::" + _PORT + ")?"

_SEGMENT = _PCHAR_ONLY + "*"
_SEGMENT_NZ = _PCHAR_ONLY + "+"
_SEGMENT_NZ_NC = "[" + _UNRESERVED + _PCT_ENCODED + _SUB_DELIMS + "@" + "]+"
_PATH_EMPTY = ""
_PATH_AB_EMPTY = "(?:\\/" + _SEGMENT + ")*"
_PATH_ABSOLUTE = "\\/(?:" + _SEGMENT_NZ + _PATH_AB_EMPTY + ")?"
_PATH_ROOTLESS = _SEGMENT_NZ + _PATH_AB_EMPTY
_PATH_NO_SCHEME = _SEGMENT_NZ_NC + _PATH_AB_EMPTY

HIER_PART = (
    "(?:(?:\\/\\/" + _AUTHORITY + _PATH_AB_EMPTY + ")" + _OR + _PATH_ABSOLUTE + _OR + _PATH_ROOTLESS + ")"
)
RELATIVE_REF = (
    "(?:(?:\\/\\/" + _AUTHORITY + _PATH_AB_EMPTY + ")" + _OR + _PATH_ABSOLUTE
    + _OR + _PATH_NO_SCHEME + _OR + _PATH_EMPTY + ")"
)

# Query ends at the fragment marker or at the end of input
QUERY = "[" + _PCHAR + "\\/\\?]*(?=#|\\Z)"
FRAGMENT = "[" + _PCHAR + "\\/\\?]*"

_IP_VERSIONS = {
    "ipv4": IPV4_ADDRESS,
    "ipv6": IPV6_ADDRESS,
    "ipvfuture": IPV_FUTURE,
}

_IP_CIDRS = {
    "ipv4": {
        "required": "\\/(?:" + IPV4_CIDR + ")",
        "optional": "(?:\\/(?:" + IPV4_CIDR + "))?",
        "forbidden": "",
    },
    "ipv6": {
        "required": "\\/" + IPV6_CIDR,
        "optional": "(?:\\/" + IPV6_CIDR + ")?",
        "forbidden": "",
    },
    "ipvfuture": {
        "required": "\\/" + IPV6_CIDR,
        "optional": "(?:\\/" + IPV6_CIDR + ")?",
        "forbidden": "",
    },
}

IP_VERSIONS = tuple(_IP_VERSIONS)
CIDR_MODES = ("required", "optional", "forbidden")


@lru_cache(maxsize=64)
def create_uri_regex(
    scheme: Optional[str] = None, allow_relative: bool = False, relative_only: bool = False
) -> "re.Pattern[str]":
    """Anchored pattern for a URI, a relative reference, or either.

    ``scheme`` is a regex alternation (e.g. ``"https?|ftp"``) replacing the
    generic scheme production.
    """
    if relative_only:
        prefix = "(?:" + RELATIVE_REF + ")"
    else:
        scheme_pattern = "(?:" + scheme + ")" if scheme else SCHEME
        with_scheme = "(?:" + scheme_pattern + ":" + HIER_PART + ")"
        prefix = "(?:" + with_scheme + "|" + RELATIVE_REF + ")" if allow_relative else with_scheme

    return re.compile("^" + prefix + "(?:\\?" + QUERY + ")?" + "(?:#" + FRAGMENT + ")?\\Z")


@lru_cache(maxsize=64)
def create_ip_regex(versions: Sequence[str], cidr: str) -> "re.Pattern[str]":
    """Anchored pattern matching any of ``versions`` with the given CIDR mode."""
    alternatives = [_IP_VERSIONS[version] + _IP_CIDRS[version][cidr] for version in versions]
    return re.compile("^(?:" + "|".join(alternatives) + ")\\Z")


__all__ = [
    "IPV4_CIDR",
    "IPV6_CIDR",
    "IPV4_ADDRESS",
    "IPV6_ADDRESS",
    "IPV_FUTURE",
    "SCHEME",
    "HIER_PART",
    "RELATIVE_REF",
    "QUERY",
    "FRAGMENT",
    "IP_VERSIONS",
    "CIDR_MODES",
    "create_uri_regex",
    "create_ip_regex",
]
