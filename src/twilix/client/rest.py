"""HTTP client for the Twilio REST API."""

import time
from enum import Enum
from typing import Any
from urllib.parse import quote

import aiohttp

from twilix.client.models import (
    AvailablePhoneNumber,
    AvailablePhoneNumberOptions,
    ChatService,
    ChatUser,
    ChatUserOptions,
    Conversation,
    ConversationOptions,
    CreateMessageOptions,
    IncomingPhoneNumber,
    IncomingPhoneNumberOptions,
    Message,
    PhoneNumberType,
    ProxyPhoneNumber,
    ProxyPhoneNumberOptions,
    ProxyService,
    ProxyServiceOptions,
    TwilioException,
)
from twilix.common.forms import FORM_CONTENT_TYPE, encode_form
from twilix.common.logging import get_logger
from twilix.common.metrics import record_api_call, record_circuit_transition
from twilix.common.settings import Settings

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if recovered


class CircuitBreakerOpen(Exception):
    """Exception raised when circuit breaker is open."""

    def __init__(self, message: str = "Circuit breaker is open"):
        super().__init__(message)


class CircuitBreaker:
    """Stops calling the API after repeated server-side failures."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 3,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds to wait before trying half-open
            half_open_max_calls: Successful calls needed to close circuit
        """
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._half_open_max_calls = half_open_max_calls

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float = 0
        self._half_open_calls = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CircuitBreaker":
        return cls(
            failure_threshold=settings.circuit_failure_threshold,
            recovery_timeout=settings.circuit_recovery_timeout,
            half_open_max_calls=settings.circuit_half_open_max_calls,
        )

    def _transition(self, new_state: CircuitState) -> None:
        record_circuit_transition(self._state.value, new_state.value)
        self._state = new_state

    @property
    def state(self) -> CircuitState:
        """Get current circuit state, transitioning if needed."""
        if (
            self._state == CircuitState.OPEN
            and time.time() - self._last_failure_time > self._recovery_timeout
        ):
            logger.info("Circuit breaker transitioning to half-open")
            self._transition(CircuitState.HALF_OPEN)
            self._half_open_calls = 0
        return self._state

    @property
    def stats(self) -> dict[str, Any]:
        """Get circuit breaker statistics."""
        return {
            "state": self.state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "last_failure_time": self._last_failure_time,
        }

    def record_success(self) -> None:
        """Record a successful call."""
        self._success_count += 1
        if self._state == CircuitState.HALF_OPEN:
            self._half_open_calls += 1
            if self._half_open_calls >= self._half_open_max_calls:
                logger.info(
                    "Circuit breaker closing after successful recovery",
                    successful_calls=self._half_open_calls,
                )
                self._transition(CircuitState.CLOSED)
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        self._failure_count += 1
        self._last_failure_time = time.time()

        if self._state == CircuitState.HALF_OPEN:
            logger.warning("Circuit breaker reopening after failure in half-open state")
            self._transition(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED and self._failure_count >= self._failure_threshold:
            logger.warning(
                "Circuit breaker opening",
                failure_count=self._failure_count,
                threshold=self._failure_threshold,
            )
            self._transition(CircuitState.OPEN)

    def can_execute(self) -> bool:
        """Check if a call may go out."""
        state = self.state
        if state == CircuitState.CLOSED:
            return True
        if state == CircuitState.HALF_OPEN:
            return self._half_open_calls < self._half_open_max_calls
        return False

    def ensure_can_execute(self) -> None:
        """Raise exception if circuit is open."""
        if not self.can_execute():
            raise CircuitBreakerOpen(
                f"Circuit breaker is {self.state.value}, "
                f"retry after {self._recovery_timeout}s"
            )


class TwilioClientError(Exception):
    """Error communicating with the Twilio API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TwilioApiError(TwilioClientError):
    """Non-success response carrying a Twilio exception body."""

    def __init__(self, exception: TwilioException, status_code: int):
        super().__init__(exception.message or f"HTTP {status_code}", status_code)
        self.exception = exception

    @property
    def code(self) -> int | None:
        return self.exception.code

    @property
    def more_info(self) -> str | None:
        return self.exception.more_info


class TwilioClient:
    """
    Async client for the Twilio REST API.

    Authenticates with HTTP basic auth using the account SID and auth token.
    Write operations send form-encoded bodies; every call goes through a
    circuit breaker.
    """

    def __init__(
        self,
        settings: Settings,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Application settings with account credentials
            circuit_breaker: Optional circuit breaker instance

        Raises:
            ValueError: If the account SID or auth token is missing
        """
        auth_token = settings.auth_token.get_secret_value()
        if not settings.account_sid or not auth_token:
            raise ValueError("account_sid and auth_token must be configured")

        self._account_url = settings.account_url
        self._chat_base = settings.chat_base_url.rstrip("/")
        self._conversations_base = settings.conversations_base_url.rstrip("/")
        self._proxy_base = settings.proxy_base_url.rstrip("/")
        self._auth = aiohttp.BasicAuth(settings.account_sid, auth_token)
        self._timeout = aiohttp.ClientTimeout(total=settings.http_timeout)
        self._session: aiohttp.ClientSession | None = None
        self._circuit_breaker = circuit_breaker or CircuitBreaker.from_settings(settings)

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get the circuit breaker instance."""
        return self._circuit_breaker

    async def __aenter__(self) -> "TwilioClient":
        """Enter async context."""
        self._session = aiohttp.ClientSession(timeout=self._timeout, auth=self._auth)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists."""
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self._timeout, auth=self._auth)
        return self._session

    def _account_resource(self, resource: str) -> str:
        return f"{self._account_url}/{resource}"

    async def _protected_request(
        self,
        operation: str,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> aiohttp.ClientResponse:
        """
        Execute HTTP request with circuit breaker protection.

        Args:
            operation: Operation name for metrics and logs
            method: HTTP method
            url: Request URL
            **kwargs: Additional arguments for the request

        Raises:
            CircuitBreakerOpen: If circuit breaker is open
            TwilioClientError: On transport failure
        """
        self._circuit_breaker.ensure_can_execute()
        session = self._ensure_session()

        start = time.perf_counter()
        try:
            response = await session.request(method, url, **kwargs)
        except aiohttp.ClientError as e:
            self._circuit_breaker.record_failure()
            record_api_call(operation, "error", time.perf_counter() - start)
            raise TwilioClientError(f"Request failed: {e}") from e

        # 4xx are caller errors, not API outages
        if response.status < 500:
            self._circuit_breaker.record_success()
        else:
            self._circuit_breaker.record_failure()
        record_api_call(operation, response.status, time.perf_counter() - start)
        return response

    async def _post_form(self, operation: str, url: str, params: dict[str, str]) -> aiohttp.ClientResponse:
        return await self._protected_request(
            operation,
            "POST",
            url,
            data=encode_form(params),
            headers={"Content-Type": FORM_CONTENT_TYPE},
        )

    async def _read(self, response: aiohttp.ClientResponse, expected_status: int) -> dict[str, Any]:
        """Decode the JSON body of an expected response or raise the API error."""
        async with response:
            if response.status != expected_status:
                raise await self._api_error(response)
            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise TwilioClientError(
                    f"Invalid JSON in response: {e}", response.status
                ) from e

    async def _api_error(self, response: aiohttp.ClientResponse) -> TwilioApiError:
        text = await response.text()
        try:
            exception = TwilioException.model_validate_json(text)
        except ValueError:
            exception = TwilioException(status=response.status, message=text)
        return TwilioApiError(exception, response.status)

    # === Messages ===

    async def create_message(
        self,
        to: str,
        body: str,
        options: CreateMessageOptions | None = None,
    ) -> Message:
        """
        Send an SMS message.

        Args:
            to: Destination phone number (E.164)
            body: Message text
            options: Sender (From or MessagingServiceSid) and callbacks

        Returns:
            The queued Message
        """
        params = (options or CreateMessageOptions()).to_params()
        params["To"] = to
        params["Body"] = body

        logger.debug("Creating message", to=to)

        response = await self._post_form(
            "create_message",
            self._account_resource("Messages.json"),
            params,
        )
        return Message.model_validate(await self._read(response, 201))

    # === Phone Numbers ===

    async def get_available_phone_numbers(
        self,
        country: str,
        number_type: PhoneNumberType,
        options: AvailablePhoneNumberOptions | None = None,
    ) -> list[AvailablePhoneNumber]:
        """
        List numbers available for purchase.

        Args:
            country: ISO country code
            number_type: Local, TollFree or Mobile
            options: Search filters

        Returns:
            Available phone numbers
        """
        resource = f"AvailablePhoneNumbers/{quote(country)}/{number_type.value}.json"
        params = (options or AvailablePhoneNumberOptions()).to_params()

        response = await self._protected_request(
            "get_available_phone_numbers",
            "GET",
            self._account_resource(resource),
            params=params,
        )
        data = await self._read(response, 200)
        return [
            AvailablePhoneNumber.model_validate(item)
            for item in data.get("available_phone_numbers", [])
        ]

    async def create_incoming_phone_number(
        self,
        options: IncomingPhoneNumberOptions,
    ) -> IncomingPhoneNumber:
        """
        Purchase a phone number.

        Raises:
            ValueError: If neither phone_number nor area_code is set
        """
        if not options.phone_number and not options.area_code:
            raise ValueError("Missing required parameter PhoneNumber or AreaCode")

        response = await self._post_form(
            "create_incoming_phone_number",
            self._account_resource("IncomingPhoneNumbers.json"),
            options.to_params(),
        )
        return IncomingPhoneNumber.model_validate(await self._read(response, 201))

    async def delete_incoming_phone_number(self, sid: str) -> None:
        """Release a purchased phone number."""
        response = await self._protected_request(
            "delete_incoming_phone_number",
            "DELETE",
            self._account_resource(f"IncomingPhoneNumbers/{quote(sid)}.json"),
        )
        async with response:
            if response.status != 204:
                raise await self._api_error(response)

        logger.info("Released incoming phone number", sid=sid)

    # === Chat ===

    async def create_chat_service(self, friendly_name: str) -> ChatService:
        """Create a chat service."""
        response = await self._post_form(
            "create_chat_service",
            f"{self._chat_base}/Services",
            {"FriendlyName": friendly_name},
        )
        return ChatService.model_validate(await self._read(response, 201))

    async def create_chat_user(
        self,
        identity: str,
        service_sid: str,
        options: ChatUserOptions | None = None,
    ) -> ChatUser:
        """Create a user in a chat service."""
        params = (options or ChatUserOptions()).to_params()
        params["Identity"] = identity

        response = await self._post_form(
            "create_chat_user",
            f"{self._chat_base}/Services/{quote(service_sid)}/Users",
            params,
        )
        return ChatUser.model_validate(await self._read(response, 201))

    # === Conversations ===

    async def create_conversation(
        self,
        options: ConversationOptions | None = None,
    ) -> Conversation:
        """Create a conversation."""
        response = await self._post_form(
            "create_conversation",
            f"{self._conversations_base}/Conversations",
            (options or ConversationOptions()).to_params(),
        )
        return Conversation.model_validate(await self._read(response, 201))

    # === Proxy ===

    async def create_proxy_service(
        self,
        unique_name: str,
        options: ProxyServiceOptions | None = None,
    ) -> ProxyService:
        """Create a proxy service."""
        params = (options or ProxyServiceOptions()).to_params()
        params["UniqueName"] = unique_name

        response = await self._post_form(
            "create_proxy_service",
            f"{self._proxy_base}/Services",
            params,
        )
        return ProxyService.model_validate(await self._read(response, 201))

    async def add_phone_number_to_proxy_service(
        self,
        service_sid: str,
        options: ProxyPhoneNumberOptions,
    ) -> ProxyPhoneNumber:
        """Add a purchased number to a proxy service's pool."""
        response = await self._post_form(
            "add_phone_number_to_proxy_service",
            f"{self._proxy_base}/Services/{quote(service_sid)}/PhoneNumbers",
            options.to_params(),
        )
        return ProxyPhoneNumber.model_validate(await self._read(response, 201))
