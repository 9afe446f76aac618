"""Webhook request signing and verification.

Twilio signs every webhook it sends with the account auth token. The signed
string is the full URL Twilio requested followed by each POST field name and
its values, with names sorted and values in the order sent. The HMAC-SHA1
digest of that string is base64-encoded into the ``X-Twilio-Signature``
header.

See https://www.twilio.com/docs/usage/security#validating-requests
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import quote

from pydantic import SecretStr
from starlette.requests import Request

from twilix.common.forms import (
    FORM_CONTENT_TYPE,
    FormDecodeError,
    FormValues,
    is_form_content_type,
    parse_form,
    values_of,
)

SIGNATURE_HEADER = "X-Twilio-Signature"


class SignatureError(Exception):
    """Base class for structural problems with a signed request."""


class MissingSignatureHeader(SignatureError):
    """The request carries no signature header."""

    def __init__(self, header: str = SIGNATURE_HEADER) -> None:
        super().__init__(f"Request is missing an {header} header")
        self.header = header


class MalformedBody(SignatureError):
    """The request body is not valid form-encoded data."""


class EncodingError(SignatureError):
    """The canonical request or digest could not be encoded."""


def canonicalize(uri: str, form_values: FormValues) -> str:
    """Build the string that gets signed: uri, then sorted names each followed by its values."""
    parts = [uri]
    for name in sorted(form_values):
        parts.append(name)
        parts.extend(values_of(form_values[name]))
    return "".join(parts)


def build_uri(base_url: str, path: str, query: str = "") -> str:
    """Join the caller-supplied base URL with the request target."""
    uri = base_url + path
    if query:
        uri = f"{uri}?{query}"
    return uri


def collect_fields(
    query: str,
    body: bytes | str = b"",
    content_type: str | None = FORM_CONTENT_TYPE,
) -> dict[str, list[str]]:
    """
    Gather the fields Twilio signs: form body fields, then query fields.

    The body only counts when it is form-urlencoded. A name present in both
    keeps its body values first, followed by its query values.

    Raises:
        MalformedBody: If the body or query is not form-encoded data
    """
    try:
        fields = parse_form(body) if is_form_content_type(content_type) else {}
        for name, values in parse_form(query).items():
            fields.setdefault(name, []).extend(values)
    except FormDecodeError as exc:
        raise MalformedBody(str(exc)) from exc
    return fields


@dataclass(frozen=True)
class SignatureCheck:
    """Outcome of a signature check and the fields that were signed."""

    valid: bool
    fields: dict[str, list[str]]


def _request_target(request: Request) -> tuple[str, str]:
    """Path and query exactly as they arrived on the wire."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("latin-1").split("?", 1)[0]
    else:
        path = quote(request.url.path, safe="/%:@!$&'()*+,;=-._~")
    query = request.scope.get("query_string", b"").decode("latin-1")
    return path, query


@dataclass(frozen=True)
class SignatureCodec:
    """
    Generates and checks request signatures for one signing key.

    Holds no mutable state, so one instance can be shared across threads and
    tasks.
    """

    auth_token: SecretStr = field(repr=False)
    header_name: str = SIGNATURE_HEADER

    def __post_init__(self) -> None:
        if isinstance(self.auth_token, str):
            object.__setattr__(self, "auth_token", SecretStr(self.auth_token))

    def generate_signature(self, uri: str, form_values: FormValues | None = None) -> bytes:
        """
        Compute the base64 signature Twilio would send for a request.

        Args:
            uri: Full URL as Twilio requested it, query string included
            form_values: POST fields; a field maps to a string or a sequence of strings

        Returns:
            Base64-encoded HMAC-SHA1 digest

        Raises:
            EncodingError: If the canonical request cannot be encoded
        """
        canonical = canonicalize(uri, form_values or {})
        key = self.auth_token.get_secret_value()
        try:
            digest = hmac.new(
                key.encode("utf-8"),
                canonical.encode("utf-8"),
                hashlib.sha1,
            ).digest()
            return base64.b64encode(digest)
        except (UnicodeEncodeError, binascii.Error) as exc:
            raise EncodingError(f"Failed to encode signature: {exc}") from exc

    def compute(self, uri: str, form_values: FormValues | None = None) -> str:
        """Signature as a header-ready string."""
        return self.generate_signature(uri, form_values).decode("ascii")

    def validate(
        self,
        uri: str,
        form_values: FormValues | None,
        signature: str | bytes,
    ) -> bool:
        """Check a signature in constant time. Mismatch returns False."""
        expected = self.generate_signature(uri, form_values)
        if isinstance(signature, str):
            signature = signature.encode("utf-8")
        return hmac.compare_digest(expected, signature)

    def check(
        self,
        base_url: str,
        path: str,
        query: str,
        headers: Mapping[str, str],
        body: bytes | str = b"",
        content_type: str | None = FORM_CONTENT_TYPE,
    ) -> SignatureCheck:
        """
        Check the signature of a request given its parts.

        Args:
            base_url: Scheme and host Twilio used, supplied by configuration
            path: Request path as received (percent-encoding intact)
            query: Raw query string without the ``?``
            headers: Request headers (looked up case-insensitively)
            body: Raw body; only read when ``content_type`` is form-urlencoded
            content_type: ``Content-Type`` of the body

        Returns:
            The outcome together with the fields that were signed

        Raises:
            MalformedBody: If the body or query is not form-encoded data
            MissingSignatureHeader: If the signature header is absent or empty
        """
        fields = collect_fields(query, body, content_type)
        uri = build_uri(base_url, path, query)
        expected = self.generate_signature(uri, fields)

        wanted = self.header_name.lower()
        actual = next((value for name, value in headers.items() if name.lower() == wanted), "")
        if not actual:
            raise MissingSignatureHeader(self.header_name)

        return SignatureCheck(hmac.compare_digest(expected, actual.encode("utf-8")), fields)

    def verify(
        self,
        base_url: str,
        path: str,
        query: str,
        headers: Mapping[str, str],
        body: bytes | str = b"",
        content_type: str | None = FORM_CONTENT_TYPE,
    ) -> bool:
        """Same as :meth:`check`, returning only whether the signature matched."""
        return self.check(base_url, path, query, headers, body, content_type).valid

    async def check_request(self, request: Request, base_url: str) -> SignatureCheck:
        """
        Check the signature header of an inbound starlette request.

        The body is read once and stays cached on the request for the
        endpoint. A request without a ``Content-Type`` contributes no body
        fields.
        """
        path, query = _request_target(request)
        body = await request.body()
        content_type = request.headers.get("content-type", "")
        return self.check(base_url, path, query, request.headers, body, content_type)

    async def check_signature(self, request: Request, base_url: str) -> bool:
        return (await self.check_request(request, base_url)).valid
