"""Unit tests for the string schema.

Tests cover:
- Base type and the empty string
- Length rules with encodings and references
- Patterns and formats (alphanum, token, email, ip, uri, guid, hex,
  base64, hostname, iso date, credit card)
- The conversion pipeline (normalize, case, trim, replace, truncate)
"""

import re

import pytest

from schemakit import number, object, ref, string
from schemakit.schemas.string import byte_length
from schemakit.utils import SchemaDefinitionError


def error_type(schema, value, options=None):
    error = schema.validate(value, options).error
    return error.details[0].type if error else None


class TestBase:
    """Test the base type check."""

    def test_accepts_strings(self):
        """Should accept a string."""
        assert string().validate("a").value == "a"

    @pytest.mark.parametrize("value", [1, True, None, [], {}])
    def test_rejects_other_types(self, value):
        """Should report string.base for non-strings."""
        assert error_type(string(), value) == "string.base"

    def test_empty_string_is_denied(self):
        """Should deny the empty string unless allowed."""
        assert error_type(string(), "") == "any.empty"
        assert error_type(string().allow(""), "") is None

    def test_insensitive_valids(self):
        """Should compare allowed values ignoring case."""
        schema = string().valid("Hello").insensitive()
        assert schema.validate("hELLO").error is None
        assert error_type(string().valid("Hello"), "hello") == "any.allowOnly"


class TestLength:
    """Test min, max and length."""

    def test_min(self):
        """Should require a minimum length."""
        schema = string().min(3)
        assert schema.validate("abc").error is None
        error = schema.validate("ab").error
        assert error.details[0].type == "string.min"
        assert error.details[0].context["limit"] == 3

    def test_max(self):
        """Should cap the length."""
        assert error_type(string().max(2), "abc") == "string.max"

    def test_length(self):
        """Should require an exact length."""
        assert error_type(string().length(2), "ab") is None
        assert error_type(string().length(2), "a") == "string.length"

    def test_encoding(self):
        """Should count bytes in the given encoding."""
        schema = string().max(2, "utf8")
        assert error_type(schema, "ab") is None
        assert error_type(schema, "éé") == "string.max"

    def test_reference_limit_not_a_number(self):
        """Should report a reference that does not resolve to an integer."""
        schema = object({"size": string(), "value": string().max(ref("size"))})
        assert error_type(schema, {"size": "x", "value": "abc"}) == "string.ref"

    def test_reference_limit_number(self):
        """Should compare against a numeric sibling."""
        schema = object({"size": number(), "value": string().max(ref("size"))})
        assert schema.validate({"size": 3, "value": "abc"}).error is None
        error = schema.validate({"size": 2, "value": "abc"}).error
        assert error.details[0].type == "string.max"
        assert error.details[0].context["limit"] == 2

    def test_reference_limit_validated_after_sibling(self):
        """Should convert the referenced sibling before checking the limit."""
        schema = object({"value": string().max(ref("size")), "size": number()})
        assert list(schema.describe()["children"]) == ["size", "value"]
        error = schema.validate({"value": "abc", "size": "2"}).error
        assert error.details[0].type == "string.max"
        assert error.details[0].context["limit"] == 2

    def test_invalid_limit(self):
        """Should reject negative and non-integer limits."""
        with pytest.raises(SchemaDefinitionError):
            string().min(-1)
        with pytest.raises(SchemaDefinitionError):
            string().min(1.5)

    def test_invalid_encoding(self):
        """Should reject unknown encodings."""
        with pytest.raises(SchemaDefinitionError, match="Invalid encoding"):
            string().min(1, "klingon")

    def test_byte_length(self):
        """Should compute decoded lengths for hex and base64."""
        assert byte_length("abcd", "hex") == 2
        assert byte_length("YWJj", "base64") == 3
        assert byte_length("YQ==", "base64") == 1
        assert byte_length("é", "utf8") == 2


class TestRegex:
    """Test pattern rules."""

    def test_match(self):
        """Should require the pattern to match."""
        schema = string().regex(r"^[abc]+$")
        assert schema.validate("abca").error is None
        error = schema.validate("abd").error
        assert error.details[0].type == "string.regex.base"
        assert error.details[0].context["pattern"] == "/^[abc]+$/"

    def test_compiled_pattern_flags(self):
        """Should keep the ignore-case flag of compiled patterns."""
        schema = string().regex(re.compile("^abc$", re.IGNORECASE))
        assert schema.validate("ABC").error is None

    def test_named_pattern(self):
        """Should use the pattern name in the error."""
        error = string().regex(r"^\d+$", "numbers").validate("x").error
        assert error.details[0].type == "string.regex.name"
        assert error.message == '"value" with value "x" fails to match the numbers pattern'

    def test_inverted_pattern(self):
        """Should reject matching values when inverted."""
        schema = string().regex(r"\d", {"invert": True})
        assert schema.validate("abc").error is None
        assert error_type(schema, "a1") == "string.regex.invert.base"

    def test_inverted_named_pattern(self):
        """Should report the named inverted code."""
        schema = string().regex(r"\d", {"name": "digit", "invert": True})
        assert error_type(schema, "a1") == "string.regex.invert.name"

    def test_pattern_alias(self):
        """Should expose pattern() as an alias."""
        assert error_type(string().pattern(r"^a"), "b") == "string.regex.base"

    def test_invalid_pattern(self):
        """Should reject non-pattern arguments."""
        with pytest.raises(SchemaDefinitionError):
            string().regex(5)


class TestFormats:
    """Test built-in string formats."""

    def test_alphanum(self):
        """Should accept letters and digits only."""
        assert error_type(string().alphanum(), "abc123") is None
        assert error_type(string().alphanum(), "abc_123") == "string.alphanum"

    def test_token(self):
        """Should accept letters, digits and underscores."""
        assert error_type(string().token(), "abc_123") is None
        assert error_type(string().token(), "abc-123") == "string.token"

    def test_email(self):
        """Should accept well-formed addresses."""
        schema = string().email()
        assert error_type(schema, "joe@site.com") is None
        assert error_type(schema, "joe") == "string.email"
        assert error_type(schema, "joe@") == "string.email"

    def test_email_tld_whitelist(self):
        """Should restrict top-level domains."""
        schema = string().email({"tld_whitelist": ["com"]})
        assert error_type(schema, "joe@site.com") is None
        assert error_type(schema, "joe@site.org") == "string.email"

    def test_email_tld_whitelist_mapping(self):
        """Should accept a mapping of allowed top-level domains."""
        schema = string().email({"tld_whitelist": {"org": True, "com": False}})
        assert error_type(schema, "joe@site.org") is None
        assert error_type(schema, "joe@site.com") == "string.email"

    def test_email_min_domain_atoms(self):
        """Should require enough domain parts."""
        schema = string().email({"min_domain_atoms": 3})
        assert error_type(schema, "joe@mail.site.com") is None
        assert error_type(schema, "joe@site.com") == "string.email"

    def test_email_check_dns_unsupported(self):
        """Should refuse DNS checks."""
        with pytest.raises(SchemaDefinitionError):
            string().email({"check_dns": True})

    def test_ip(self):
        """Should accept IPv4 and IPv6 addresses with optional CIDR."""
        schema = string().ip()
        assert error_type(schema, "192.168.0.1") is None
        assert error_type(schema, "::1") is None
        assert error_type(schema, "10.0.0.0/8") is None
        error = schema.validate("not-an-ip").error
        assert error.details[0].type == "string.ip"
        assert error.details[0].context["cidr"] == "optional"

    def test_ip_version(self):
        """Should restrict IP versions."""
        schema = string().ip({"version": "ipv4"})
        assert error_type(schema, "127.0.0.1") is None
        error = schema.validate("::1").error
        assert error.details[0].type == "string.ipVersion"
        assert error.details[0].context["version"] == ["ipv4"]

    def test_ip_cidr(self):
        """Should enforce the CIDR mode."""
        assert error_type(string().ip({"cidr": "required"}), "10.0.0.1") == "string.ip"
        assert error_type(string().ip({"cidr": "required"}), "10.0.0.1/24") is None
        assert error_type(string().ip({"cidr": "forbidden"}), "10.0.0.1/24") == "string.ip"

    def test_ip_invalid_options(self):
        """Should reject unknown versions and CIDR modes."""
        with pytest.raises(SchemaDefinitionError):
            string().ip({"version": "ipv7"})
        with pytest.raises(SchemaDefinitionError):
            string().ip({"cidr": "sometimes"})

    def test_uri(self):
        """Should accept absolute URIs."""
        schema = string().uri()
        assert error_type(schema, "http://example.com/path?x=1#top") is None
        assert error_type(schema, "/relative/path") == "string.uri"
        assert error_type(schema, "http://exa mple.com") == "string.uri"

    def test_uri_scheme(self):
        """Should restrict schemes."""
        schema = string().uri({"scheme": ["https"]})
        assert error_type(schema, "https://example.com") is None
        error = schema.validate("http://example.com").error
        assert error.details[0].type == "string.uriCustomScheme"

    def test_uri_relative(self):
        """Should accept relative references when allowed."""
        assert error_type(string().uri({"allow_relative": True}), "/path") is None
        assert error_type(string().uri({"relative_only": True}), "/path") is None
        assert error_type(string().uri({"relative_only": True}), "http://example.com") == "string.uriRelativeOnly"

    def test_guid(self):
        """Should accept GUIDs with optional braces."""
        schema = string().guid()
        assert error_type(schema, "69593d62-71ea-4548-85e4-04a0e4ab1b9b") is None
        assert error_type(schema, "{69593d62-71ea-4548-85e4-04a0e4ab1b9b}") is None
        assert error_type(schema, "{69593d62-71ea-4548-85e4-04a0e4ab1b9b]") == "string.guid"
        assert error_type(schema, "69593d62") == "string.guid"

    def test_guid_version(self):
        """Should restrict GUID versions."""
        schema = string().uuid({"version": "uuidv4"})
        assert error_type(schema, "69593d62-71ea-4548-85e4-04a0e4ab1b9b") is None
        assert error_type(schema, "69593d62-71ea-1548-85e4-04a0e4ab1b9b") == "string.guid"

    def test_hex(self):
        """Should accept hexadecimal strings."""
        assert error_type(string().hex(), "0aFf") is None
        assert error_type(string().hex(), "0g") == "string.hex"

    def test_hex_byte_aligned(self):
        """Should pad odd-length hex when converting and reject it otherwise."""
        schema = string().hex({"byte_aligned": True})
        assert schema.validate("abc").value == "0abc"
        assert error_type(schema, "abc", {"convert": False}) == "string.hexAlign"

    def test_base64(self):
        """Should accept padded base64."""
        assert error_type(string().base64(), "YW55IGNhcm5hbCBwbGVhcw==") is None
        assert error_type(string().base64(), "YW55IGNhcm5hbCBwbGVhcw") == "string.base64"
        assert error_type(string().base64({"padding_required": False}), "YW55IGNhcm5hbCBwbGVhcw") is None

    def test_hostname(self):
        """Should accept host names and IPv6 addresses."""
        schema = string().hostname()
        assert error_type(schema, "www.example.com") is None
        assert error_type(schema, "::1") is None
        assert error_type(schema, "-bad-.com") == "string.hostname"

    def test_iso_date(self):
        """Should accept and normalize ISO 8601 dates."""
        schema = string().iso_date()
        assert schema.validate("2013-06-07T14:21:46.295+02:00").value == "2013-06-07T12:21:46.295Z"
        assert error_type(schema, "2013-06-07T14:21:46.295+02:00", {"convert": False}) is None
        assert error_type(schema, "June 7th") == "string.isoDate"

    def test_credit_card(self):
        """Should apply the Luhn checksum."""
        schema = string().credit_card()
        assert error_type(schema, "4111111111111111") is None
        assert error_type(schema, "4111111111111112") == "string.creditCard"
        assert error_type(schema, "abc") == "string.creditCard"


class TestConversionPipeline:
    """Test conversions applied before rules."""

    def test_trim_then_case(self):
        """Should trim and change case."""
        assert string().trim().uppercase().validate("  ab  ").value == "AB"

    def test_lowercase(self):
        """Should lowercase when converting and check otherwise."""
        assert string().lowercase().validate("AbC").value == "abc"
        assert error_type(string().lowercase(), "AbC", {"convert": False}) == "string.lowercase"

    def test_trim_without_convert(self):
        """Should reject surrounding whitespace when not converting."""
        assert error_type(string().trim(), " a ", {"convert": False}) == "string.trim"

    def test_normalize(self):
        """Should normalize unicode."""
        decomposed = "e\u0301"
        assert string().normalize("NFC").validate(decomposed).value == "\u00e9"
        assert error_type(string().normalize("NFC"), decomposed, {"convert": False}) == "string.normalize"

    def test_normalize_invalid_form(self):
        """Should reject unknown normalization forms."""
        with pytest.raises(SchemaDefinitionError):
            string().normalize("NFX")

    def test_replace(self):
        """Should replace every match."""
        schema = string().replace(re.compile(r"\s+"), "-")
        assert schema.validate("a b  c").value == "a-b-c"

    def test_replace_literal(self):
        """Should treat string patterns literally."""
        assert string().replace(".", "!").validate("a.b").value == "a!b"

    def test_replace_groups(self):
        """Should support group references in the replacement."""
        schema = string().replace(re.compile(r"(\w+)@(\w+)"), r"\2 at \1")
        assert schema.validate("joe@home").value == "home at joe"

    def test_truncate(self):
        """Should cut values to max() when truncating."""
        schema = string().max(3).truncate()
        assert schema.validate("abcdef").value == "abc"
        assert error_type(string().max(3), "abcdef") == "string.max"

    def test_truncate_disabled(self):
        """Should allow turning truncation off again."""
        assert error_type(string().max(3).truncate().truncate(False), "abcdef") == "string.max"

    def test_pipeline_skipped_without_convert(self):
        """Should leave the value alone when not converting."""
        schema = string().replace("a", "b")
        assert schema.validate("aaa", {"convert": False}).value == "aaa"
