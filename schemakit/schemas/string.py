"""String schema.

With ``convert`` on, a string goes through a fixed pipeline before any rule
runs: unicode normalization, case folding, trimming, replacements,
truncation to ``max()`` and hex byte alignment. Without ``convert`` the
corresponding rules only check that the value is already in that shape.

The empty string is denied by default; ``allow("")`` re-enables it.
"""

import ipaddress
import re
import unicodedata
from collections.abc import Mapping
from datetime import timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Union

from email_validator import EmailNotValidError, validate_email

from schemakit import rfc3986
from schemakit.errors import format_pattern
from schemakit.reference import Reference, is_ref
from schemakit.schemas.any import AnySchema
from schemakit.schemas.binary import ENCODINGS
from schemakit.schemas.date import ISO_DATE, parse_date_string
from schemakit.types import Outcome, State
from schemakit.utils import assert_that, is_safe_integer, unique

NORMALIZATION_FORMS = ("NFC", "NFD", "NFKC", "NFKD")

GUID_BRACKETS = {"{": "}", "[": "]", "(": ")", "": ""}
GUID_VERSIONS = {"uuidv1": "1", "uuidv2": "2", "uuidv3": "3", "uuidv4": "4", "uuidv5": "5"}

_DEFAULT_IP_REGEX = rfc3986.create_ip_regex(("ipv4", "ipv6", "ipvfuture"), "optional")
_DEFAULT_URI_REGEX = rfc3986.create_uri_regex()

_ALPHANUM = re.compile(r"^[a-zA-Z0-9]+\Z")
_TOKEN = re.compile(r"^\w+\Z", re.ASCII)
_HEX = re.compile(r"^[a-f0-9]+\Z", re.IGNORECASE)
_BASE64_PADDED = re.compile(r"^(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?\Z")
_BASE64_UNPADDED = re.compile(r"^(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}(==)?|[A-Za-z0-9+/]{3}=?)?\Z")
_HOSTNAME = re.compile(
    r"^(([a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9\-]*[a-zA-Z0-9])\.)*"
    r"([A-Za-z0-9]|[A-Za-z0-9][A-Za-z0-9\-]*[A-Za-z0-9])\Z"
)
_SCHEME = re.compile(r"[a-zA-Z][a-zA-Z0-9+\-.]*")


class Replacement(NamedTuple):
    pattern: "re.Pattern[str]"
    replacement: str


def byte_length(value: str, encoding: str) -> int:
    """Length of ``value`` once encoded (or decoded, for base64 and hex)."""
    if encoding == "hex":
        return len(value) // 2
    if encoding == "base64":
        size = len(value)
        for _ in range(2):
            if size and value[size - 1] == "=":
                size -= 1
        return (size * 3) >> 2
    try:
        return len(ENCODINGS[encoding](value))
    except UnicodeEncodeError:
        return len(value.encode("utf-8"))


def _is_ipv6(value: str) -> bool:
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def _to_iso_string(value: str) -> Optional[str]:
    try:
        parsed = parse_date_string(value)
    except (ValueError, OverflowError):
        return None
    parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def _luhn(value: str) -> bool:
    if not value.isdigit() or not value.isascii():
        return False

    total = 0
    multiplier = 1
    for char in reversed(value):
        digit = int(char) * multiplier
        total += digit - 9 if digit > 9 else digit
        multiplier ^= 3
    return total % 10 == 0 and total > 0


def _recompile(pattern: Union[str, "re.Pattern[str]"]) -> "re.Pattern[str]":
    if isinstance(pattern, str):
        return re.compile(pattern)
    return re.compile(pattern.pattern, pattern.flags & re.IGNORECASE)


class StringSchema(AnySchema):
    """Schema for strings.

    Examples:
        >>> from schemakit import string
        >>> string().trim().uppercase().validate("  ab  ").value
        'AB'
        >>> string().min(3).validate("ab").error.message
        '"value" length must be at least 3 characters long'
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "string"
        self._invalids.add("")

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        if isinstance(value, str) and options.get("convert"):
            flags = self._flags

            if flags.normalize:
                value = unicodedata.normalize(flags.normalize, value)

            if flags.case:
                value = value.upper() if flags.case == "upper" else value.lower()

            if flags.trim:
                value = value.strip()

            for replacement in self._inner.get("replacements") or []:
                value = replacement.pattern.sub(replacement.replacement, value)

            if flags.truncate:
                for rule in self._tests:
                    if rule.name == "max":
                        if is_safe_integer(rule.arg):
                            value = value[: rule.arg]
                        break

            if flags.byte_aligned and len(value) % 2 != 0:
                value = "0" + value

        if isinstance(value, str):
            return Outcome(value=value)
        return Outcome(value=value, errors=[self.create_error("string.base", {"value": value}, state, options)])

    def insensitive(self) -> "StringSchema":
        """Compare allowed and denied values case-insensitively."""
        if self._flags.insensitive:
            return self

        obj = self.clone()
        obj._flags.insensitive = True
        return obj

    # ------------------------------------------------------------------ #
    # Length                                                             #
    # ------------------------------------------------------------------ #

    def _length_rule(
        self,
        name: str,
        limit: Union[int, Reference],
        encoding: Optional[str],
        compare: Callable[[int, int], bool],
    ) -> "StringSchema":
        is_ref_limit = is_ref(limit)
        assert_that(
            (is_safe_integer(limit) and limit >= 0) or is_ref_limit,
            "limit must be a positive integer or reference",
        )
        assert_that(not encoding or encoding in ENCODINGS, "Invalid encoding:", encoding)

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            compare_to = limit
            if is_ref_limit:
                compare_to = limit(state.ref_root, options)
                if not is_safe_integer(compare_to):
                    return schema.create_error("string.ref", {"ref": limit.key}, state, options)

            length = byte_length(value, encoding) if encoding else len(value)
            if compare(length, compare_to):
                return value
            return schema.create_error(
                "string." + name, {"limit": compare_to, "value": value, "encoding": encoding}, state, options
            )

        return self._test(name, limit, check)

    def min(self, limit: Union[int, Reference], encoding: Optional[str] = None) -> "StringSchema":
        return self._length_rule("min", limit, encoding, lambda length, limit: length >= limit)

    def max(self, limit: Union[int, Reference], encoding: Optional[str] = None) -> "StringSchema":
        return self._length_rule("max", limit, encoding, lambda length, limit: length <= limit)

    def length(self, limit: Union[int, Reference], encoding: Optional[str] = None) -> "StringSchema":
        return self._length_rule("length", limit, encoding, lambda length, limit: length == limit)

    # ------------------------------------------------------------------ #
    # Patterns and formats                                               #
    # ------------------------------------------------------------------ #

    def regex(self, pattern: Union[str, "re.Pattern[str]"], pattern_options: Any = None) -> "StringSchema":
        """Require a match of ``pattern`` anywhere in the value.

        Args:
            pattern: A compiled pattern or pattern source; only IGNORECASE is kept
            pattern_options: A name used in the error message, or a dict with
                ``name`` and ``invert`` (reject matches instead)
        """
        assert_that(isinstance(pattern, (str, re.Pattern)), "pattern must be a RegExp")

        compiled = _recompile(pattern)
        name = None
        invert = False
        if isinstance(pattern_options, str):
            name = pattern_options
        elif isinstance(pattern_options, Mapping):
            invert = bool(pattern_options.get("invert"))
            name = pattern_options.get("name") or None

        error_code = "string.regex" + (".invert" if invert else "") + (".name" if name else ".base")
        arg = {"pattern": compiled, "name": name, "invert": invert}

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            matched = compiled.search(value) is not None
            if matched != invert:
                return value
            return schema.create_error(
                error_code, {"name": name, "pattern": format_pattern(compiled), "value": value}, state, options
            )

        return self._test("regex", arg, check)

    def alphanum(self) -> "StringSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if _ALPHANUM.match(value):
                return value
            return schema.create_error("string.alphanum", {"value": value}, state, options)

        return self._test("alphanum", None, check)

    def token(self) -> "StringSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if _TOKEN.match(value):
                return value
            return schema.create_error("string.token", {"value": value}, state, options)

        return self._test("token", None, check)

    def email(self, email_options: Optional[Mapping] = None) -> "StringSchema":
        """Require a syntactically valid e-mail address (no DNS lookups).

        Args:
            email_options: ``tld_whitelist`` (TLDs allowed, as an iterable or
                a mapping with truthy values) and ``min_domain_atoms`` (minimum
                number of dot-separated domain parts)
        """
        tlds = None
        min_domain_atoms = None

        if email_options:
            assert_that(isinstance(email_options, Mapping), "email options must be an object")
            assert_that("check_dns" not in email_options, "checkDNS option is not supported")

            whitelist = email_options.get("tld_whitelist")
            assert_that(
                whitelist is None or isinstance(whitelist, (Mapping, list, tuple, set, frozenset)),
                "tldWhitelist must be an array or object",
            )
            if isinstance(whitelist, Mapping):
                tlds = {tld.lower() for tld, allowed in whitelist.items() if allowed}
            elif whitelist is not None:
                tlds = {tld.lower() for tld in whitelist}

            min_domain_atoms = email_options.get("min_domain_atoms")
            assert_that(
                min_domain_atoms is None or (is_safe_integer(min_domain_atoms) and min_domain_atoms > 0),
                "minDomainAtoms must be a positive integer",
            )

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            try:
                validated = validate_email(value, check_deliverability=False)
            except EmailNotValidError:
                return schema.create_error("string.email", {"value": value}, state, options)

            atoms = validated.ascii_domain.split(".")
            if tlds is not None and atoms[-1].lower() not in tlds:
                return schema.create_error("string.email", {"value": value}, state, options)
            if min_domain_atoms is not None and len(atoms) < min_domain_atoms:
                return schema.create_error("string.email", {"value": value}, state, options)
            return value

        return self._test("email", dict(email_options) if email_options else None, check)

    def ip(self, ip_options: Optional[Mapping] = None) -> "StringSchema":
        """Require an IP address.

        Args:
            ip_options: ``version`` (one or more of ``ipv4``, ``ipv6``,
                ``ipvfuture``) and ``cidr`` (``required``, ``optional`` or
                ``forbidden``; ``optional`` by default)
        """
        assert_that(ip_options is None or isinstance(ip_options, Mapping), "options must be an object")
        ip_options = dict(ip_options or {})

        regex = _DEFAULT_IP_REGEX
        cidr = ip_options.get("cidr")
        if cidr:
            assert_that(isinstance(cidr, str), "cidr must be a string")
            cidr = cidr.lower()
            assert_that(cidr in rfc3986.CIDR_MODES, "cidr must be one of " + ", ".join(rfc3986.CIDR_MODES))
            if not ip_options.get("version") and cidr != "optional":
                regex = rfc3986.create_ip_regex(("ipv4", "ipv6", "ipvfuture"), cidr)
        else:
            cidr = "optional"
        ip_options["cidr"] = cidr

        versions: Optional[List[str]] = None
        version = ip_options.get("version")
        if version:
            requested = list(version) if isinstance(version, (list, tuple)) else [version]
            assert_that(len(requested) >= 1, "version must have at least 1 version specified")

            versions = []
            for index, item in enumerate(requested):
                assert_that(isinstance(item, str), f"version at position {index} must be a string")
                item = item.lower()
                assert_that(
                    item in rfc3986.IP_VERSIONS,
                    f"version at position {index} must be one of " + ", ".join(rfc3986.IP_VERSIONS),
                )
                versions.append(item)

            versions = unique(versions)
            ip_options["version"] = versions
            regex = rfc3986.create_ip_regex(tuple(versions), cidr)

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if regex.match(value):
                return value
            if versions:
                return schema.create_error(
                    "string.ipVersion", {"value": value, "cidr": cidr, "version": versions}, state, options
                )
            return schema.create_error("string.ip", {"value": value, "cidr": cidr}, state, options)

        return self._test("ip", ip_options, check)

    def uri(self, uri_options: Optional[Mapping] = None) -> "StringSchema":
        """Require an RFC 3986 URI.

        Args:
            uri_options: ``scheme`` (a scheme name, pattern, or a list of
                them), ``allow_relative`` and ``relative_only``
        """
        custom_scheme = ""
        allow_relative = False
        relative_only = False
        regex = _DEFAULT_URI_REGEX

        if uri_options:
            assert_that(isinstance(uri_options, Mapping), "options must be an object")

            scheme = uri_options.get("scheme")
            if scheme:
                assert_that(
                    isinstance(scheme, (re.Pattern, str, list, tuple)), "scheme must be a RegExp, String, or Array"
                )
                schemes = list(scheme) if isinstance(scheme, (list, tuple)) else [scheme]
                assert_that(len(schemes) >= 1, "scheme must have at least 1 scheme specified")

                parts = []
                for index, item in enumerate(schemes):
                    assert_that(
                        isinstance(item, (re.Pattern, str)), f"scheme at position {index} must be a RegExp or String"
                    )
                    if isinstance(item, re.Pattern):
                        parts.append(item.pattern)
                    else:
                        assert_that(_SCHEME.search(item), f"scheme at position {index} must be a valid scheme")
                        parts.append(re.escape(item))
                custom_scheme = "|".join(parts)

            allow_relative = bool(uri_options.get("allow_relative"))
            relative_only = bool(uri_options.get("relative_only"))

        if custom_scheme or allow_relative or relative_only:
            regex = rfc3986.create_uri_regex(custom_scheme or None, allow_relative, relative_only)

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if regex.match(value):
                return value
            if relative_only:
                return schema.create_error("string.uriRelativeOnly", {"value": value}, state, options)
            if custom_scheme:
                return schema.create_error(
                    "string.uriCustomScheme", {"scheme": custom_scheme, "value": value}, state, options
                )
            return schema.create_error("string.uri", {"value": value}, state, options)

        return self._test("uri", dict(uri_options) if uri_options else None, check)

    def iso_date(self) -> "StringSchema":
        """Require an ISO 8601 date; when converting, normalize it to UTC ``YYYY-MM-DDTHH:mm:ss.sssZ``."""

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if ISO_DATE.match(value):
                if not options.get("convert"):
                    return value

                converted = _to_iso_string(value)
                if converted is not None:
                    return converted

            return schema.create_error("string.isoDate", {"value": value}, state, options)

        return self._test("isoDate", None, check)

    def guid(self, guid_options: Optional[Mapping] = None) -> "StringSchema":
        """Require a GUID, optionally of specific ``version`` (``uuidv1`` ... ``uuidv5``)."""
        version_numbers = ""

        if guid_options and guid_options.get("version"):
            version = guid_options["version"]
            requested = list(version) if isinstance(version, (list, tuple)) else [version]
            assert_that(len(requested) >= 1, "version must have at least 1 valid version specified")

            seen = set()
            for index, item in enumerate(requested):
                assert_that(isinstance(item, str), f"version at position {index} must be a string")
                number = GUID_VERSIONS.get(item.lower())
                assert_that(
                    number, f"version at position {index} must be one of " + ", ".join(GUID_VERSIONS)
                )
                assert_that(number not in seen, f"version at position {index} must not be a duplicate.")
                version_numbers += number
                seen.add(number)

        guid_regex = re.compile(
            r"^([\[{\(]?)[0-9A-F]{8}([:-]?)[0-9A-F]{4}\2?"
            + "[" + (version_numbers or "0-9A-F") + "]"
            + r"[0-9A-F]{3}\2?"
            + "[" + ("89AB" if version_numbers else "0-9A-F") + "]"
            + r"[0-9A-F]{3}\2?[0-9A-F]{12}([\]}\)]?)\Z",
            re.IGNORECASE,
        )

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            match = guid_regex.match(value)
            if not match or GUID_BRACKETS[match.group(1)] != match.group(3):
                return schema.create_error("string.guid", {"value": value}, state, options)
            return value

        return self._test("guid", dict(guid_options) if guid_options else None, check)

    def hex(self, hex_options: Optional[Mapping] = None) -> "StringSchema":
        """Require hexadecimal characters; ``byte_aligned`` also requires an even length."""
        hex_options = hex_options or {}
        assert_that(isinstance(hex_options, Mapping), "hex options must be an object")
        byte_aligned = hex_options.get("byte_aligned")
        assert_that(byte_aligned is None or isinstance(byte_aligned, bool), "byteAligned must be boolean")

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if not _HEX.match(value):
                return schema.create_error("string.hex", {"value": value}, state, options)
            if byte_aligned and len(value) % 2 != 0:
                return schema.create_error("string.hexAlign", {"value": value}, state, options)
            return value

        obj = self._test("hex", _HEX, check)
        if byte_aligned:
            obj._flags.byte_aligned = True
        return obj

    def base64(self, base64_options: Optional[Mapping] = None) -> "StringSchema":
        """Require base64; padding is required unless ``padding_required`` is False."""
        base64_options = base64_options or {}
        assert_that(isinstance(base64_options, Mapping), "base64 options must be an object")
        padding_required = base64_options.get("padding_required")
        assert_that(
            padding_required is None or isinstance(padding_required, bool), "paddingRequired must be boolean"
        )

        regex = _BASE64_UNPADDED if padding_required is False else _BASE64_PADDED

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if regex.match(value):
                return value
            return schema.create_error("string.base64", {"value": value}, state, options)

        return self._test("base64", regex, check)

    def hostname(self) -> "StringSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if (len(value) <= 255 and _HOSTNAME.match(value)) or _is_ipv6(value):
                return value
            return schema.create_error("string.hostname", {"value": value}, state, options)

        return self._test("hostname", None, check)

    def credit_card(self) -> "StringSchema":
        """Require a number passing the Luhn checksum."""

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if _luhn(value):
                return value
            return schema.create_error("string.creditCard", {"value": value}, state, options)

        return self._test("creditCard", None, check)

    # ------------------------------------------------------------------ #
    # Transforms                                                         #
    # ------------------------------------------------------------------ #

    def normalize(self, form: str = "NFC") -> "StringSchema":
        assert_that(
            form in NORMALIZATION_FORMS, "normalization form must be one of " + ", ".join(NORMALIZATION_FORMS)
        )

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if options.get("convert") or value == unicodedata.normalize(form, value):
                return value
            return schema.create_error("string.normalize", {"value": value, "form": form}, state, options)

        obj = self._test("normalize", form, check)
        obj._flags.normalize = form
        return obj

    def lowercase(self) -> "StringSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if options.get("convert") or value == value.lower():
                return value
            return schema.create_error("string.lowercase", {"value": value}, state, options)

        obj = self._test("lowercase", None, check)
        obj._flags.case = "lower"
        return obj

    def uppercase(self) -> "StringSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if options.get("convert") or value == value.upper():
                return value
            return schema.create_error("string.uppercase", {"value": value}, state, options)

        obj = self._test("uppercase", None, check)
        obj._flags.case = "upper"
        return obj

    def trim(self) -> "StringSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if options.get("convert") or value == value.strip():
                return value
            return schema.create_error("string.trim", {"value": value}, state, options)

        obj = self._test("trim", None, check)
        obj._flags.trim = True
        return obj

    def replace(self, pattern: Union[str, "re.Pattern[str]"], replacement: str) -> "StringSchema":
        """Replace every match of ``pattern`` (a literal when given as a string)."""
        if isinstance(pattern, str):
            pattern = re.compile(re.escape(pattern))
        assert_that(isinstance(pattern, re.Pattern), "pattern must be a RegExp")
        assert_that(isinstance(replacement, str), "replacement must be a String")

        obj = self.clone()
        replacements = obj._inner.get("replacements") or []
        obj._inner["replacements"] = replacements + [Replacement(pattern, replacement)]
        return obj

    def truncate(self, enabled: Optional[bool] = None) -> "StringSchema":
        """Cut values longer than ``max()`` instead of rejecting them."""
        value = True if enabled is None else bool(enabled)
        if self._flags.truncate == value:
            return self

        obj = self.clone()
        obj._flags.truncate = value
        return obj

    # Aliases
    uuid = guid
    pattern = regex


__all__ = ["StringSchema", "Replacement", "byte_length"]
