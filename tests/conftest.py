"""Pytest configuration and fixtures."""

from typing import Any
from urllib.parse import parse_qsl, urlencode

import pytest
from pydantic import SecretStr

from twilix.common.settings import Settings
from twilix.security.signature import SignatureCodec

AUTH_TOKEN = "1c892n40nd03kdnc0112slzkl3091j20"
BASE_URL = "http://www.postbin.org"
WEBHOOK_PATH = "/1ed898x"

GET_SIGNATURE = "0JNGUhXSEKtzgrpd2HoQz7+F34M="
POST_SIGNATURE = "fF+xx6dTinOaCdZ0aIeNkHr/ZAA="

VALID_SIGNATURE_PARAMETERS = (
    "FromZip=89449&From=%2B15306666666&"
    "FromCity=SOUTH+LAKE+TAHOE&ApiVersion=2010-04-01&To=%2B15306384866&"
    "CallStatus=ringing&CalledState=CA&FromState=CA&Direction=inbound&"
    "ToCity=OAKLAND&ToZip=94612&CallerCity=SOUTH+LAKE+TAHOE&FromCountry=US&"
    "CallerName=CA+Wireless+Call&CalledCity=OAKLAND&CalledCountry=US&"
    "Caller=%2B15306666666&CallerZip=89449&AccountSid=AC9a9f9392lad99kla0sklakjs90j092j3&"
    "Called=%2B15306384866&CallerCountry=US&CalledZip=94612&CallSid=CAd800bb12c0426a7ea4230e492fef2a4f&"
    "CallerState=CA&ToCountry=US&ToState=CA"
)

ACCOUNT_SID = "ACXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX"


def sorted_query(params: str = VALID_SIGNATURE_PARAMETERS) -> str:
    """Query string with keys sorted, as Twilio builds it for GET callbacks."""
    return urlencode(sorted(parse_qsl(params, keep_blank_values=True)))


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        account_sid=ACCOUNT_SID,
        auth_token=SecretStr(AUTH_TOKEN),
        webhook_base_url=BASE_URL,
        http_timeout=5.0,
    )


@pytest.fixture
def codec() -> SignatureCodec:
    """Codec keyed with the reference auth token."""
    return SignatureCodec(SecretStr(AUTH_TOKEN))


@pytest.fixture
def post_params() -> dict[str, str]:
    """Reference callback parameters as a flat mapping."""
    return dict(parse_qsl(VALID_SIGNATURE_PARAMETERS))


@pytest.fixture
def message_payload() -> dict[str, Any]:
    """Message resource as returned by the Messages endpoint."""
    return {
        "sid": "SMXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX",
        "date_created": "Thu, 30 Jul 2020 00:00:00 +0000",
        "date_updated": "Thu, 30 Jul 2020 00:00:00 +0000",
        "date_sent": None,
        "account_sid": ACCOUNT_SID,
        "to": "+15555555555",
        "from": "+15555555554",
        "messaging_service_sid": None,
        "body": "Test Message",
        "status": "queued",
        "num_segments": "1",
        "num_media": "0",
        "direction": "outbound-api",
        "api_version": "2010-04-01",
        "price": None,
        "price_unit": "USD",
        "error_code": None,
        "error_message": None,
        "uri": f"/2010-04-01/Accounts/{ACCOUNT_SID}/Messages/SMXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX.json",
        "subresource_uris": {
            "media": f"/2010-04-01/Accounts/{ACCOUNT_SID}/Messages/SMXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX/Media.json"
        },
    }
