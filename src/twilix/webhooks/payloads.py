"""Inbound webhook payloads."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field


class SmsWebhook(BaseModel):
    """Fields Twilio posts for an incoming SMS."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    account_sid: str = Field(alias="AccountSid")
    api_version: str | None = Field(default=None, alias="ApiVersion")
    body: str = Field(default="", alias="Body")
    from_: str = Field(alias="From")
    from_city: str | None = Field(default=None, alias="FromCity")
    from_country: str | None = Field(default=None, alias="FromCountry")
    from_state: str | None = Field(default=None, alias="FromState")
    from_zip: str | None = Field(default=None, alias="FromZip")
    message_sid: str = Field(alias="MessageSid")
    num_media: int = Field(default=0, alias="NumMedia")
    num_segments: int = Field(default=1, alias="NumSegments")
    sms_message_sid: str | None = Field(default=None, alias="SmsMessageSid")
    sms_sid: str | None = Field(default=None, alias="SmsSid")
    sms_status: str | None = Field(default=None, alias="SmsStatus")
    to: str = Field(alias="To")
    to_city: str | None = Field(default=None, alias="ToCity")
    to_country: str | None = Field(default=None, alias="ToCountry")
    to_state: str | None = Field(default=None, alias="ToState")
    to_zip: str | None = Field(default=None, alias="ToZip")
    media: list[tuple[str, str | None]] = Field(default_factory=list)


def parse_sms_webhook(params: Mapping[str, Sequence[str]]) -> SmsWebhook:
    """
    Build an SmsWebhook from parsed form fields.

    Takes the first value of each field. ``MediaUrlN``/``MediaContentTypeN``
    pairs are collected into ``media``.

    Raises:
        pydantic.ValidationError: If required fields are missing
    """
    flat = {key: values[0] for key, values in params.items() if values}

    media: list[tuple[str, str | None]] = []
    try:
        num_media = int(flat.get("NumMedia", "0"))
    except ValueError:
        # left for the model to reject
        num_media = 0
    for i in range(num_media):
        url = flat.get(f"MediaUrl{i}")
        if url:
            media.append((url, flat.get(f"MediaContentType{i}")))

    return SmsWebhook.model_validate({**flat, "media": media})
