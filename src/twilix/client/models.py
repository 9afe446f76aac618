"""Request options and response resources for the Twilio REST API."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from twilix.common.dates import Rfc2822Datetime


class WireEnum(str, Enum):
    """Enum whose value is the string sent over the wire."""

    def __str__(self) -> str:
        return self.value


class MessageDirection(WireEnum):
    INBOUND = "inbound"
    OUTBOUND_API = "outbound-api"
    OUTBOUND_CALL = "outbound-call"
    OUTBOUND_REPLY = "outbound-reply"


class MessageStatus(WireEnum):
    ACCEPTED = "accepted"
    SCHEDULED = "scheduled"
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    DELIVERED = "delivered"
    UNDELIVERED = "undelivered"
    RECEIVING = "receiving"
    RECEIVED = "received"
    READ = "read"
    PARTIALLY_DELIVERED = "partially_delivered"
    CANCELED = "canceled"


class PhoneNumberType(WireEnum):
    LOCAL = "Local"
    TOLL_FREE = "TollFree"
    MOBILE = "Mobile"


class GeoMatchLevel(WireEnum):
    AREA_CODE = "area-code"
    COUNTRY = "country"
    EXTENDED_AREA_CODE = "extended-area-code"


class NumberSelectionBehaviour(WireEnum):
    AVOID_STICKY = "avoid-sticky"
    PREFER_STICKY = "prefer-sticky"


# Countries where Twilio files mobile numbers under Local
_MOBILE_AS_LOCAL = frozenset({"US", "CA"})


def phone_number_type_for(number: int, country: str) -> PhoneNumberType:
    """
    Map a numeric index (0=Local, 1=TollFree, 2=Mobile) to a type a country supports.

    Raises:
        ValueError: If the index is out of range
    """
    types = list(PhoneNumberType)
    if not 0 <= number < len(types):
        raise ValueError(f"Unknown phone number type index: {number}")
    number_type = types[number]
    if country.upper() in _MOBILE_AS_LOCAL and number_type is PhoneNumberType.MOBILE:
        return PhoneNumberType.LOCAL
    return number_type


# === Request options ===


class TwilioOptions(BaseModel):
    """Optional request parameters. Field aliases are the Twilio parameter names."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_params(self) -> dict[str, str]:
        """Form/query parameters for the set options, unset ones omitted."""
        params: dict[str, str] = {}
        for key, value in self.model_dump(by_alias=True, exclude_none=True).items():
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
            elif isinstance(value, Enum):
                params[key] = str(value.value)
            elif isinstance(value, datetime):
                params[key] = value.isoformat()
            else:
                params[key] = str(value)
        return params


class CreateMessageOptions(TwilioOptions):
    from_: str | None = Field(default=None, alias="From")
    messaging_service_sid: str | None = Field(default=None, alias="MessagingServiceSid")
    status_callback: str | None = Field(default=None, alias="StatusCallback")
    attempt: int | None = Field(default=None, alias="Attempt")
    media_url: str | None = Field(default=None, alias="MediaUrl")


class AvailablePhoneNumberOptions(TwilioOptions):
    area_code: int | None = Field(default=None, alias="AreaCode")
    beta: bool | None = Field(default=None, alias="Beta")
    contains: str | None = Field(default=None, alias="Contains")
    distance: int | None = Field(default=None, alias="Distance")
    exclude_all_address_required: bool | None = Field(default=None, alias="ExcludeAllAddressRequired")
    exclude_foreign_address_required: bool | None = Field(
        default=None, alias="ExcludeForeignAddressRequired"
    )
    exclude_local_address_required: bool | None = Field(
        default=None, alias="ExcludeLocalAddressRequired"
    )
    in_lata: str | None = Field(default=None, alias="InLata")
    in_locality: str | None = Field(default=None, alias="InLocality")
    in_postal_code: str | None = Field(default=None, alias="InPostalCode")
    in_rate_center: str | None = Field(default=None, alias="InRateCenter")
    in_region: str | None = Field(default=None, alias="InRegion")
    mms_enabled: bool | None = Field(default=None, alias="MmsEnabled")
    near_lat_long: str | None = Field(default=None, alias="NearLatLong")
    near_number: str | None = Field(default=None, alias="NearNumber")
    page: int | None = Field(default=None, alias="Page")
    page_size: int | None = Field(default=None, alias="PageSize")
    sms_enabled: bool | None = Field(default=None, alias="SmsEnabled")
    voice_enabled: bool | None = Field(default=None, alias="VoiceEnabled")


class IncomingPhoneNumberOptions(TwilioOptions):
    address_sid: str | None = Field(default=None, alias="AddressSid")
    area_code: str | None = Field(default=None, alias="AreaCode")
    bundle_sid: str | None = Field(default=None, alias="BundleSid")
    emergency_address_sid: str | None = Field(default=None, alias="EmergencyAddressSid")
    emergency_status: str | None = Field(default=None, alias="EmergencyStatus")
    friendly_name: str | None = Field(default=None, alias="FriendlyName")
    identity_sid: str | None = Field(default=None, alias="IdentitySid")
    phone_number: str | None = Field(default=None, alias="PhoneNumber")
    sms_application_sid: str | None = Field(default=None, alias="SmsApplicationSid")
    sms_fallback_method: str | None = Field(default=None, alias="SmsFallbackMethod")
    sms_fallback_url: str | None = Field(default=None, alias="SmsFallbackUrl")
    sms_method: str | None = Field(default=None, alias="SmsMethod")
    sms_url: str | None = Field(default=None, alias="SmsUrl")
    status_callback: str | None = Field(default=None, alias="StatusCallback")
    status_callback_method: str | None = Field(default=None, alias="StatusCallbackMethod")
    trunk_sid: str | None = Field(default=None, alias="TrunkSid")
    voice_application_sid: str | None = Field(default=None, alias="VoiceApplicationSid")
    voice_fallback_method: str | None = Field(default=None, alias="VoiceFallbackMethod")
    voice_fallback_url: str | None = Field(default=None, alias="VoiceFallbackUrl")
    voice_method: str | None = Field(default=None, alias="VoiceMethod")
    voice_receive_mode: str | None = Field(default=None, alias="VoiceReceiveMode")
    voice_url: str | None = Field(default=None, alias="VoiceUrl")


class ChatUserOptions(TwilioOptions):
    role_sid: str | None = Field(default=None, alias="RoleSid")
    attributes: str | None = Field(default=None, alias="Attributes")
    friendly_name: str | None = Field(default=None, alias="FriendlyName")


class ConversationOptions(TwilioOptions):
    friendly_name: str | None = Field(default=None, alias="FriendlyName")
    unique_name: str | None = Field(default=None, alias="UniqueName")
    date_created: datetime | None = Field(default=None, alias="DateCreated")
    date_updated: datetime | None = Field(default=None, alias="DateUpdated")
    messaging_service_sid: str | None = Field(default=None, alias="MessagingServiceSid")
    attributes: str | None = Field(default=None, alias="Attributes")
    state: str | None = Field(default=None, alias="State")
    inactive_timer: str | None = Field(default=None, alias="Timers.Inactive")
    closed_timer: str | None = Field(default=None, alias="Timers.Closed")


class ProxyServiceOptions(TwilioOptions):
    callback_url: str | None = Field(default=None, alias="CallbackUrl")
    chat_instance_sid: str | None = Field(default=None, alias="ChatInstanceSid")
    default_ttl: int | None = Field(default=None, alias="DefaultTtl")
    geo_match_level: GeoMatchLevel | None = Field(default=None, alias="GeoMatchLevel")
    intercept_callback_url: str | None = Field(default=None, alias="InterceptCallbackUrl")
    number_selection_behavior: NumberSelectionBehaviour | None = Field(
        default=None, alias="NumberSelectionBehavior"
    )
    out_of_session_callback_url: str | None = Field(default=None, alias="OutOfSessionCallbackUrl")


class ProxyPhoneNumberOptions(TwilioOptions):
    sid: str | None = Field(default=None, alias="Sid")
    phone_number: str | None = Field(default=None, alias="PhoneNumber")
    is_reserved: bool | None = Field(default=None, alias="IsReserved")


# === Resources ===


class TwilioResource(BaseModel):
    """Base for decoded API resources. Unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TwilioException(TwilioResource):
    """Error body returned by the API for non-success responses."""

    status: int = 0
    message: str = ""
    code: int | None = None
    more_info: str | None = None


class Message(TwilioResource):
    sid: str
    account_sid: str
    api_version: str | None = None
    body: str = ""
    date_created: Rfc2822Datetime | None = None
    date_sent: Rfc2822Datetime | None = None
    date_updated: Rfc2822Datetime | None = None
    direction: MessageDirection
    error_code: int | None = None
    error_message: str | None = None
    from_: str | None = Field(default=None, alias="from")
    messaging_service_sid: str | None = None
    num_media: str = "0"
    num_segments: str = "1"
    price: str | None = None
    price_unit: str | None = None
    status: MessageStatus
    subresource_uris: dict[str, str] = Field(default_factory=dict)
    to: str
    uri: str | None = None


class NumberCapabilities(TwilioResource):
    # available numbers report MMS/SMS in upper case
    mms: bool = Field(default=False, validation_alias=AliasChoices("mms", "MMS"))
    sms: bool = Field(default=False, validation_alias=AliasChoices("sms", "SMS"))
    voice: bool = False


class AvailablePhoneNumber(TwilioResource):
    address_requirements: str | None = None
    beta: bool = False
    capabilities: NumberCapabilities = Field(default_factory=NumberCapabilities)
    friendly_name: str | None = None
    iso_country: str | None = None
    lata: str | None = None
    latitude: str | None = None
    locality: str | None = None
    longitude: str | None = None
    phone_number: str
    postal_code: str | None = None
    rate_center: str | None = None
    region: str | None = None


class IncomingPhoneNumber(TwilioResource):
    sid: str
    account_sid: str
    address_requirements: str | None = None
    address_sid: str | None = None
    api_version: str | None = None
    beta: bool = False
    bundle_sid: str | None = None
    capabilities: NumberCapabilities = Field(default_factory=NumberCapabilities)
    date_created: Rfc2822Datetime | None = None
    date_updated: Rfc2822Datetime | None = None
    emergency_address_sid: str | None = None
    emergency_status: str | None = None
    friendly_name: str | None = None
    identity_sid: str | None = None
    origin: str | None = None
    phone_number: str
    sms_application_sid: str | None = None
    sms_fallback_method: str | None = None
    sms_fallback_url: str | None = None
    sms_method: str | None = None
    sms_url: str | None = None
    status: str | None = None
    status_callback: str | None = None
    status_callback_method: str | None = None
    trunk_sid: str | None = None
    uri: str | None = None
    voice_application_sid: str | None = None
    voice_caller_id_lookup: bool = False
    voice_fallback_method: str | None = None
    voice_fallback_url: str | None = None
    voice_method: str | None = None
    voice_receive_mode: str | None = None
    voice_url: str | None = None


class ChatService(TwilioResource):
    sid: str
    account_sid: str
    friendly_name: str | None = None
    date_created: datetime | None = None
    date_updated: datetime | None = None
    default_channel_creator_role_sid: str | None = None
    default_channel_role_sid: str | None = None
    default_service_role_sid: str | None = None
    limits: dict[str, int] = Field(default_factory=dict)
    links: dict[str, str] = Field(default_factory=dict)
    notifications: dict[str, Any] = Field(default_factory=dict)
    media: dict[str, Any] = Field(default_factory=dict)
    post_webhook_url: str | None = None
    pre_webhook_url: str | None = None
    pre_webhook_retry_count: int = 0
    post_webhook_retry_count: int = 0
    reachability_enabled: bool = False
    read_status_enabled: bool = False
    typing_indicator_timeout: int | None = None
    url: str | None = None
    webhook_filters: list[str] | None = None
    webhook_method: str | None = None


class ChatUser(TwilioResource):
    sid: str
    account_sid: str
    service_sid: str
    role_sid: str | None = None
    identity: str
    attributes: str | None = None
    is_online: bool | None = None
    is_notifiable: bool | None = None
    friendly_name: str | None = None
    joined_channels_count: int = 0
    date_created: datetime | None = None
    date_updated: datetime | None = None
    links: dict[str, str] = Field(default_factory=dict)
    url: str | None = None


class Conversation(TwilioResource):
    sid: str
    account_sid: str
    chat_service_sid: str | None = None
    messaging_service_sid: str | None = None
    friendly_name: str | None = None
    unique_name: str | None = None
    attributes: str | None = None
    date_created: datetime | None = None
    date_updated: datetime | None = None
    state: str | None = None
    timers: dict[str, str | None] = Field(default_factory=dict)
    links: dict[str, str] = Field(default_factory=dict)
    url: str | None = None


class ProxyService(TwilioResource):
    sid: str
    account_sid: str
    chat_instance_sid: str | None = None
    unique_name: str
    default_ttl: int = 0
    callback_url: str | None = None
    geo_match_level: GeoMatchLevel | None = None
    number_selection_behavior: NumberSelectionBehaviour | None = None
    intercept_callback_url: str | None = None
    out_of_session_callback_url: str | None = None
    date_created: datetime | None = None
    date_updated: datetime | None = None
    url: str | None = None
    links: dict[str, str] = Field(default_factory=dict)


class ProxyNumberCapabilities(TwilioResource):
    mms_inbound: bool = False
    mms_outbound: bool = False
    sms_inbound: bool = False
    sms_outbound: bool = False
    voice_inbound: bool = False
    voice_outbound: bool = False


class ProxyPhoneNumber(TwilioResource):
    sid: str
    account_sid: str
    service_sid: str
    date_created: datetime | None = None
    date_updated: datetime | None = None
    phone_number: str
    friendly_name: str | None = None
    iso_country: str | None = None
    capabilities: ProxyNumberCapabilities = Field(default_factory=ProxyNumberCapabilities)
    url: str | None = None
    is_reserved: bool = False
    in_use: int = 0
