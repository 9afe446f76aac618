"""Twilio REST API client."""

from twilix.client.models import (
    AvailablePhoneNumberOptions,
    ChatUserOptions,
    ConversationOptions,
    CreateMessageOptions,
    GeoMatchLevel,
    IncomingPhoneNumberOptions,
    MessageDirection,
    MessageStatus,
    NumberSelectionBehaviour,
    PhoneNumberType,
    ProxyPhoneNumberOptions,
    ProxyServiceOptions,
    phone_number_type_for,
)
from twilix.client.rest import (
    CircuitBreaker,
    CircuitBreakerOpen,
    TwilioApiError,
    TwilioClient,
    TwilioClientError,
)

__all__ = [
    "TwilioClient",
    "TwilioClientError",
    "TwilioApiError",
    "CircuitBreaker",
    "CircuitBreakerOpen",
    "CreateMessageOptions",
    "AvailablePhoneNumberOptions",
    "IncomingPhoneNumberOptions",
    "ChatUserOptions",
    "ConversationOptions",
    "ProxyServiceOptions",
    "ProxyPhoneNumberOptions",
    "MessageDirection",
    "MessageStatus",
    "PhoneNumberType",
    "GeoMatchLevel",
    "NumberSelectionBehaviour",
    "phone_number_type_for",
]
