"""Tests for webhook signature generation and verification."""

import hmac
from unittest.mock import patch

import pytest
from pydantic import SecretStr
from starlette.requests import Request

from conftest import (
    AUTH_TOKEN,
    BASE_URL,
    GET_SIGNATURE,
    POST_SIGNATURE,
    VALID_SIGNATURE_PARAMETERS,
    WEBHOOK_PATH,
    sorted_query,
)
from twilix.common.forms import FORM_CONTENT_TYPE, parse_form
from twilix.security.signature import (
    EncodingError,
    MalformedBody,
    MissingSignatureHeader,
    SignatureCodec,
    SignatureError,
    build_uri,
    canonicalize,
    collect_fields,
)


def make_request(
    method: str,
    path: str,
    query: str = "",
    body: bytes = b"",
    headers: dict[str, str] | None = None,
) -> Request:
    """Build a starlette request from raw parts."""
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": query.encode("latin-1"),
        "headers": raw_headers,
    }
    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


class TestCanonicalize:
    """Tests for building the signed string."""

    def test_uri_only(self):
        """No fields leaves the URI verbatim."""
        assert canonicalize("https://example.com/sms?x=1", {}) == "https://example.com/sms?x=1"

    def test_names_sorted_values_in_order(self):
        """Names are sorted, values follow their name unsorted."""
        result = canonicalize("u", {"b": ["2", "1"], "a": "x"})
        assert result == "uaxb21"

    def test_field_without_values(self):
        """A field with no values contributes just its name."""
        assert canonicalize("u", {"Empty": []}) == "uEmpty"

    def test_codepoint_ordering(self):
        """Uppercase sorts before lowercase."""
        assert canonicalize("", {"b": "1", "B": "2", "a": "3"}) == "B2a3b1"

    def test_build_uri(self):
        """Query is appended only when present."""
        assert build_uri(BASE_URL, WEBHOOK_PATH) == "http://www.postbin.org/1ed898x"
        assert build_uri(BASE_URL, WEBHOOK_PATH, "a=1") == "http://www.postbin.org/1ed898x?a=1"


class TestGenerateSignature:
    """Tests for signature generation."""

    def test_reference_post_vector(self, codec, post_params):
        """Known POST parameters produce the known signature."""
        uri = BASE_URL + WEBHOOK_PATH
        assert codec.generate_signature(uri, post_params) == POST_SIGNATURE.encode("ascii")
        assert codec.compute(uri, post_params) == POST_SIGNATURE

    def test_reference_get_vector(self, codec):
        """GET requests sign the full URL plus the query fields."""
        uri = build_uri(BASE_URL, WEBHOOK_PATH, sorted_query())
        assert codec.compute(uri, parse_form(sorted_query())) == GET_SIGNATURE

    def test_get_vector_needs_query_fields(self, codec):
        """The URL alone does not reproduce the GET signature."""
        uri = build_uri(BASE_URL, WEBHOOK_PATH, sorted_query())
        assert codec.compute(uri, {}) != GET_SIGNATURE

    def test_deterministic(self, codec, post_params):
        """Same inputs always give the same signature."""
        uri = BASE_URL + WEBHOOK_PATH
        signatures = {codec.compute(uri, post_params) for _ in range(5)}
        assert len(signatures) == 1

    def test_accepts_str_key(self, post_params):
        """A plain string key works like a SecretStr."""
        codec = SignatureCodec(AUTH_TOKEN)
        assert codec.compute(BASE_URL + WEBHOOK_PATH, post_params) == POST_SIGNATURE

    def test_field_insertion_order_irrelevant(self, codec):
        """Fields are sorted before signing."""
        first = codec.compute("https://example.com", {"B": ["2"], "A": ["1"]})
        second = codec.compute("https://example.com", {"A": ["1"], "B": ["2"]})
        assert first == second

    def test_value_order_matters(self, codec):
        """Values of one field keep their order."""
        first = codec.compute("https://example.com", {"A": ["1", "2"]})
        second = codec.compute("https://example.com", {"A": ["2", "1"]})
        assert first != second

    def test_sensitive_to_uri(self, codec, post_params):
        """Changing one character of the URI changes the signature."""
        original = codec.compute(BASE_URL + WEBHOOK_PATH, post_params)
        mutated = codec.compute(BASE_URL + "/1ed898y", post_params)
        assert original != mutated

    def test_sensitive_to_field_name(self, codec, post_params):
        """Renaming a field changes the signature."""
        original = codec.compute(BASE_URL, post_params)
        renamed = dict(post_params)
        renamed["Tp"] = renamed.pop("To")
        assert codec.compute(BASE_URL, renamed) != original

    def test_sensitive_to_field_value(self, codec, post_params):
        """Changing a value changes the signature."""
        original = codec.compute(BASE_URL, post_params)
        changed = {**post_params, "CallStatus": "ringinG"}
        assert codec.compute(BASE_URL, changed) != original

    def test_sensitive_to_key(self, post_params):
        """A different key gives a different signature."""
        uri = BASE_URL + WEBHOOK_PATH
        other = SignatureCodec(SecretStr(AUTH_TOKEN[:-1] + "1"))
        assert other.compute(uri, post_params) != POST_SIGNATURE

    def test_unencodable_uri_raises_encoding_error(self, codec):
        """Lone surrogates cannot be encoded and surface as EncodingError."""
        with pytest.raises(EncodingError):
            codec.generate_signature("https://example.com/\ud800", {})

    def test_key_hidden_from_repr(self, codec):
        """The signing key never shows up in repr."""
        assert AUTH_TOKEN not in repr(codec)

    def test_validate(self, codec, post_params):
        """validate compares against a supplied signature."""
        uri = BASE_URL + WEBHOOK_PATH
        assert codec.validate(uri, post_params, POST_SIGNATURE) is True
        assert codec.validate(uri, post_params, POST_SIGNATURE.encode()) is True
        assert codec.validate(uri, post_params, "foo") is False


class TestVerify:
    """Tests for verifying requests from their parts."""

    def test_post_body(self, codec):
        """Form body fields are included."""
        headers = {"X-Twilio-Signature": POST_SIGNATURE}
        assert codec.verify(BASE_URL, WEBHOOK_PATH, "", headers, VALID_SIGNATURE_PARAMETERS.encode())

    def test_header_lookup_case_insensitive(self, codec):
        """Header names match regardless of case."""
        headers = {"x-twilio-signature": POST_SIGNATURE}
        assert codec.verify(BASE_URL, WEBHOOK_PATH, "", headers, VALID_SIGNATURE_PARAMETERS)

    def test_missing_header(self, codec):
        """An absent header is an error, not a mismatch."""
        with pytest.raises(MissingSignatureHeader):
            codec.verify(BASE_URL, WEBHOOK_PATH, "", {}, VALID_SIGNATURE_PARAMETERS.encode())

    def test_empty_header_counts_as_missing(self, codec):
        """An empty header value is treated as absent."""
        with pytest.raises(MissingSignatureHeader):
            codec.verify(BASE_URL, WEBHOOK_PATH, "", {"X-Twilio-Signature": ""}, b"")

    @pytest.mark.parametrize("body", [b"a=%zz", b"\xff\xfe=1", b"a=1;b=2"])
    def test_malformed_body(self, codec, body):
        """Undecodable bodies raise MalformedBody before any comparison."""
        with pytest.raises(MalformedBody):
            codec.verify(BASE_URL, WEBHOOK_PATH, "", {"X-Twilio-Signature": "foo"}, body)

    def test_errors_share_base(self):
        """Structural errors derive from SignatureError."""
        assert issubclass(MissingSignatureHeader, SignatureError)
        assert issubclass(MalformedBody, SignatureError)
        assert issubclass(EncodingError, SignatureError)

    def test_custom_header_name(self):
        """The header name is configurable."""
        codec = SignatureCodec(SecretStr(AUTH_TOKEN), header_name="X-Signature")
        headers = {"X-Signature": POST_SIGNATURE}
        assert codec.verify(BASE_URL, WEBHOOK_PATH, "", headers, VALID_SIGNATURE_PARAMETERS)

    def test_uses_constant_time_comparison(self, codec):
        """Comparison goes through hmac.compare_digest."""
        headers = {"X-Twilio-Signature": POST_SIGNATURE}
        with patch.object(hmac, "compare_digest", wraps=hmac.compare_digest) as compare:
            codec.verify(BASE_URL, WEBHOOK_PATH, "", headers, VALID_SIGNATURE_PARAMETERS)
        compare.assert_called_once_with(POST_SIGNATURE.encode("ascii"), POST_SIGNATURE.encode("utf-8"))

    def test_get_vector(self, codec):
        """A GET request verifies with its query fields and no body."""
        headers = {"X-Twilio-Signature": GET_SIGNATURE}
        assert codec.verify(BASE_URL, WEBHOOK_PATH, sorted_query(), headers) is True

    def test_malformed_query(self, codec):
        """An undecodable query raises MalformedBody."""
        with pytest.raises(MalformedBody):
            codec.verify(BASE_URL, WEBHOOK_PATH, "a=%zz", {"X-Twilio-Signature": "foo"})

    def test_non_form_body_ignored(self, codec):
        """Bodies of other content types contribute no fields."""
        headers = {"X-Twilio-Signature": codec.compute(BASE_URL + WEBHOOK_PATH, {})}
        body = VALID_SIGNATURE_PARAMETERS.encode()
        assert codec.verify(BASE_URL, WEBHOOK_PATH, "", headers, body, "text/plain") is True

    def test_check_returns_signed_fields(self, codec):
        """check exposes the fields it signed."""
        headers = {"X-Twilio-Signature": POST_SIGNATURE}
        result = codec.check(BASE_URL, WEBHOOK_PATH, "", headers, VALID_SIGNATURE_PARAMETERS)
        assert result.valid is True
        assert result.fields == parse_form(VALID_SIGNATURE_PARAMETERS)


class TestCollectFields:
    """Tests for gathering the signed fields."""

    def test_query_values_follow_body_values(self):
        """A name in both body and query keeps body values first."""
        fields = collect_fields("a=3&c=4", b"a=1&b=2&a=5", FORM_CONTENT_TYPE)
        assert fields == {"a": ["1", "5", "3"], "b": ["2"], "c": ["4"]}

    def test_order_reaches_signature(self, codec):
        """Body-then-query order is what gets signed."""
        fields = collect_fields("a=2", b"a=1", FORM_CONTENT_TYPE)
        assert codec.compute("u", fields) == codec.compute("u", {"a": ["1", "2"]})
        assert codec.compute("u", fields) != codec.compute("u", {"a": ["2", "1"]})

    def test_content_type_parameters_ignored(self):
        """A charset parameter still counts as form-urlencoded."""
        fields = collect_fields("", b"a=1", "Application/X-WWW-Form-Urlencoded; charset=UTF-8")
        assert fields == {"a": ["1"]}

    @pytest.mark.parametrize("content_type", ["", None, "application/json", "multipart/form-data; boundary=x"])
    def test_other_content_types_skip_body(self, content_type):
        """Only form-urlencoded bodies are read."""
        assert collect_fields("q=1", b"a=1", content_type) == {"q": ["1"]}

    def test_malformed_body_of_other_type_ignored(self):
        """Bodies that are not read cannot be malformed."""
        assert collect_fields("", b"a=%zz;b", "application/json") == {}

    def test_malformed_query(self):
        """A bad query escape raises MalformedBody."""
        with pytest.raises(MalformedBody):
            collect_fields("a=%zz")


class TestCheckSignature:
    """Tests for checking starlette requests."""

    @pytest.mark.asyncio
    async def test_get_request(self, codec):
        """GET callbacks validate against the query string."""
        request = make_request(
            "GET",
            WEBHOOK_PATH,
            query=sorted_query(),
            headers={"Content-Type": "application/x-www-form-urlencoded", "X-Twilio-Signature": GET_SIGNATURE},
        )
        assert await codec.check_signature(request, BASE_URL) is True

    @pytest.mark.asyncio
    async def test_get_request_wrong_signature(self, codec):
        """A wrong header value is a mismatch."""
        request = make_request(
            "GET",
            WEBHOOK_PATH,
            query=sorted_query(),
            headers={"X-Twilio-Signature": "foo"},
        )
        assert await codec.check_signature(request, BASE_URL) is False

    @pytest.mark.asyncio
    async def test_get_request_missing_header(self, codec):
        """A missing header raises."""
        request = make_request("GET", WEBHOOK_PATH, query=sorted_query())
        with pytest.raises(MissingSignatureHeader):
            await codec.check_signature(request, BASE_URL)

    @pytest.mark.asyncio
    async def test_post_request(self, codec):
        """POST callbacks validate against the form body."""
        request = make_request(
            "POST",
            WEBHOOK_PATH,
            body=VALID_SIGNATURE_PARAMETERS.encode(),
            headers={"Content-Type": "application/x-www-form-urlencoded", "X-Twilio-Signature": POST_SIGNATURE},
        )
        assert await codec.check_signature(request, BASE_URL) is True

    @pytest.mark.asyncio
    async def test_post_request_wrong_signature(self, codec):
        """A wrong header value is a mismatch."""
        request = make_request(
            "POST",
            WEBHOOK_PATH,
            body=VALID_SIGNATURE_PARAMETERS.encode(),
            headers={"X-Twilio-Signature": "foo"},
        )
        assert await codec.check_signature(request, BASE_URL) is False

    @pytest.mark.asyncio
    async def test_post_request_missing_header(self, codec):
        """A missing header raises."""
        request = make_request("POST", WEBHOOK_PATH, body=VALID_SIGNATURE_PARAMETERS.encode())
        with pytest.raises(MissingSignatureHeader):
            await codec.check_signature(request, BASE_URL)

    @pytest.mark.asyncio
    async def test_raw_path_is_signed(self, codec):
        """The path is signed as received, percent-encoding intact."""
        path = "/hooks/a%20b"
        signature = codec.compute(f"{BASE_URL}{path}", {})
        request = make_request("POST", path, headers={"X-Twilio-Signature": signature})
        assert await codec.check_signature(request, BASE_URL) is True

    @pytest.mark.asyncio
    async def test_body_still_readable(self, codec):
        """The endpoint can read the body after the check."""
        body = VALID_SIGNATURE_PARAMETERS.encode()
        request = make_request("POST", WEBHOOK_PATH, body=body, headers={"X-Twilio-Signature": POST_SIGNATURE})
        await codec.check_signature(request, BASE_URL)
        assert await request.body() == body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b'{"Body": "hi"}', b'{"Body": "50% off"}'])
    async def test_json_body_signs_url_only(self, codec, body):
        """A JSON body is not parsed as a form and is not signed."""
        signature = codec.compute(BASE_URL + WEBHOOK_PATH, {})
        request = make_request(
            "POST",
            WEBHOOK_PATH,
            body=body,
            headers={"Content-Type": "application/json", "X-Twilio-Signature": signature},
        )
        assert await codec.check_signature(request, BASE_URL) is True

    @pytest.mark.asyncio
    async def test_missing_content_type_ignores_body(self, codec):
        """Without a Content-Type the body contributes no fields."""
        signature = codec.compute(BASE_URL + WEBHOOK_PATH, {})
        request = make_request(
            "POST",
            WEBHOOK_PATH,
            body=VALID_SIGNATURE_PARAMETERS.encode(),
            headers={"X-Twilio-Signature": signature},
        )
        assert await codec.check_signature(request, BASE_URL) is True

    @pytest.mark.asyncio
    async def test_query_and_body_fields_combined(self, codec):
        """POST callbacks with a query sign body fields then query fields."""
        fields = {"From": ["+15306666666"], "To": ["+15306384866", "+15550000000"]}
        signature = codec.compute(BASE_URL + WEBHOOK_PATH + "?To=%2B15550000000", fields)
        request = make_request(
            "POST",
            WEBHOOK_PATH,
            query="To=%2B15550000000",
            body=b"From=%2B15306666666&To=%2B15306384866",
            headers={"Content-Type": "application/x-www-form-urlencoded", "X-Twilio-Signature": signature},
        )
        result = await codec.check_request(request, BASE_URL)
        assert result.valid is True
        assert result.fields == fields
