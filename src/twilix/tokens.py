"""Access tokens for client-side SDKs.

An access token is an HS256 JWT signed with an API key secret. Grants decide
which products the holder may use.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import jwt

TOKEN_CONTENT_TYPE = "twilio-fpa;v=1"
DEFAULT_TTL = 3600


class Grant(Protocol):
    """A product grant embedded in an access token."""

    @property
    def key(self) -> str: ...

    def to_payload(self) -> dict[str, Any]: ...


@dataclass(frozen=True)
class ChatGrant:
    """Grants access to a Programmable Chat service."""

    service_sid: str | None = None

    @property
    def key(self) -> str:
        return "chat"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.service_sid is not None:
            payload["service_sid"] = self.service_sid
        return payload


@dataclass
class AccessToken:
    """
    Builder for a Twilio access token.

    Args:
        account_sid: Account the token is issued for (``sub``)
        signing_key_sid: API key SID (``iss``)
        secret: API key secret used to sign the token
        identity: Identity of the end user, if any
        ttl: Lifetime in seconds
    """

    account_sid: str
    signing_key_sid: str
    secret: str = field(repr=False)
    identity: str | None = None
    ttl: int = DEFAULT_TTL
    grants: list[Grant] = field(default_factory=list)

    def add_grant(self, grant: Grant) -> None:
        self.grants.append(grant)

    def claims(self, now: int | None = None) -> dict[str, Any]:
        """Claims for a token issued at ``now`` (epoch seconds)."""
        issued_at = int(time.time()) if now is None else now

        grants: dict[str, Any] = {}
        for grant in self.grants:
            grants[grant.key] = grant.to_payload()
        if self.identity is not None:
            grants["identity"] = self.identity

        return {
            "jti": f"{self.signing_key_sid}-{issued_at}",
            "iss": self.signing_key_sid,
            "sub": self.account_sid,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
            "grants": grants,
        }

    def to_jwt(self, now: int | None = None) -> str:
        """Encode and sign the token."""
        return jwt.encode(
            self.claims(now),
            self.secret,
            algorithm="HS256",
            headers={"cty": TOKEN_CONTENT_TYPE, "typ": "JWT"},
        )

    def __str__(self) -> str:
        return self.to_jwt()
