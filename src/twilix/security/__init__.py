"""Webhook signature generation and verification."""

from twilix.security.signature import (
    SIGNATURE_HEADER,
    EncodingError,
    MalformedBody,
    MissingSignatureHeader,
    SignatureCheck,
    SignatureCodec,
    SignatureError,
    build_uri,
    canonicalize,
    collect_fields,
)

__all__ = [
    "SIGNATURE_HEADER",
    "SignatureCheck",
    "SignatureCodec",
    "SignatureError",
    "MissingSignatureHeader",
    "MalformedBody",
    "EncodingError",
    "build_uri",
    "canonicalize",
    "collect_fields",
]
