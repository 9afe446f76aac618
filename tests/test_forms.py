"""Tests for form body encoding and parsing."""

import pytest

from twilix.common.forms import FormDecodeError, encode_form, is_form_content_type, parse_form, values_of


class TestParseForm:
    """Tests for parse_form."""

    def test_plus_and_percent_decoding(self):
        """Plus becomes space and escapes are decoded."""
        assert parse_form(b"City=SOUTH+LAKE+TAHOE&From=%2B15306666666") == {
            "City": ["SOUTH LAKE TAHOE"],
            "From": ["+15306666666"],
        }

    def test_repeated_fields_keep_order(self):
        """Repeated values stay in the order sent."""
        assert parse_form("a=2&b=x&a=1") == {"a": ["2", "1"], "b": ["x"]}

    def test_field_without_equals(self):
        """A bare name has an empty value."""
        assert parse_form("flag&x=1") == {"flag": [""], "x": ["1"]}

    def test_empty_body(self):
        """An empty body has no fields."""
        assert parse_form(b"") == {}
        assert parse_form("&&") == {}

    def test_utf8_values(self):
        """Escaped UTF-8 is decoded."""
        assert parse_form("Body=caf%C3%A9") == {"Body": ["café"]}

    @pytest.mark.parametrize(
        "body",
        [
            b"a=%zz",
            b"a=%4",
            b"a=1;b=2",
            b"\xff=1",
            b"Body=%C3%28",
        ],
    )
    def test_rejects_malformed(self, body):
        """Malformed input raises FormDecodeError."""
        with pytest.raises(FormDecodeError):
            parse_form(body)

    def test_decode_error_is_value_error(self):
        """Callers catching ValueError see decode failures."""
        assert issubclass(FormDecodeError, ValueError)


class TestEncodeForm:
    """Tests for encode_form."""

    def test_encodes_in_order(self):
        """Keys and repeated values keep their order."""
        assert encode_form({"To": "+1555", "MediaUrl": ["a", "b"]}) == "To=%2B1555&MediaUrl=a&MediaUrl=b"

    def test_parse_inverts_encode(self):
        """Encoded bodies parse back to the same fields."""
        values = {"Body": "Hello world & more", "To": ["+15555555555"]}
        assert parse_form(encode_form(values)) == {
            "Body": ["Hello world & more"],
            "To": ["+15555555555"],
        }


class TestValuesOf:
    """Tests for values_of."""

    def test_bare_string(self):
        """A bare string is one value, not a sequence of characters."""
        assert values_of("abc") == ["abc"]

    def test_sequence(self):
        """Sequences become lists."""
        assert values_of(("a", "b")) == ["a", "b"]


class TestIsFormContentType:
    """Tests for content type detection."""

    @pytest.mark.parametrize(
        "content_type",
        ["application/x-www-form-urlencoded", "application/x-www-form-urlencoded; charset=utf-8", "APPLICATION/X-WWW-FORM-URLENCODED"],
    )
    def test_form(self, content_type):
        """The media type matches regardless of case and parameters."""
        assert is_form_content_type(content_type) is True

    @pytest.mark.parametrize("content_type", [None, "", "application/json", "text/plain", "multipart/form-data"])
    def test_not_form(self, content_type):
        """Anything else, including no content type, is not a form."""
        assert is_form_content_type(content_type) is False
