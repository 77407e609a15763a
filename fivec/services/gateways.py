"""
External gateway clients: email (Resend), SMS (Twilio) and the match/export
compute services (Supabase edge functions).

Each client is one member of the capability set injected into the
dispatcher and orchestrator, so tests can substitute deterministic fakes.
"""
import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Type

import httpx
import structlog

from fivec.config import Settings, get_settings
from fivec.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
)
from fivec.core.exceptions import (
    ComputeError,
    ConfigError,
    ExportError,
    FiveCError,
    GatewayError,
)
from fivec.core.retry import (
    RetryConfig,
    create_async_retry_decorator,
    get_compute_retry_config,
    get_gateway_retry_config,
)
from fivec.schemas.results import MatchResult

logger = structlog.get_logger(__name__)


@dataclass
class SMSReceipt:
    """Provider acknowledgement of an accepted SMS."""

    sid: str
    status: Optional[str]
    from_number: Optional[str]
    to_number: Optional[str]


class EmailGateway(Protocol):
    def ensure_configured(self) -> None: ...

    async def send(self, from_: str, to: str, subject: str, text: str) -> str: ...


class SMSGateway(Protocol):
    @property
    def configured(self) -> bool: ...

    def ensure_configured(self) -> None: ...

    async def send(self, to: str, body: str) -> SMSReceipt: ...


class MatchComputeService(Protocol):
    async def compute(self, criteria_weights: Optional[Dict[str, float]] = None) -> MatchResult: ...


class ExportComputeService(Protocol):
    async def render(self, format: str, group_ids: Optional[List[str]] = None) -> bytes: ...


class ClientRequestError(httpx.HTTPStatusError):
    """4xx response from a service."""


class ServiceClient:
    """
    HTTP client with circuit breaker and retry protection.

    Transport failures are retried; anything still failing is raised as
    ``error_cls`` so callers only see the domain taxonomy.
    """

    def __init__(
        self,
        service_name: str,
        base_url: str,
        timeout_seconds: int = 30,
        circuit_breaker_config: Optional[CircuitBreakerConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        error_cls: Type[FiveCError] = GatewayError,
    ):
        self.service_name = service_name
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.error_cls = error_cls
        # 4xx rejections never count toward opening the circuit
        self.circuit_breaker = CircuitBreaker(
            service_name=service_name,
            config=circuit_breaker_config or CircuitBreakerConfig(),
            ignored_exceptions=(ClientRequestError,),
        )
        self.retry_decorator = create_async_retry_decorator(
            config=retry_config or get_gateway_retry_config(),
            service_name=service_name,
        )

    async def request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request with circuit breaker protection.

        Raises:
            GatewayError (or the configured error class): If the call fails
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        send = self.retry_decorator(self._send)

        try:
            return await self.circuit_breaker.call_async(send, method, url, **kwargs)

        except CircuitBreakerOpenError as e:
            raise self.error_cls(self.service_name, str(e))

        except httpx.HTTPStatusError as e:
            logger.error(
                "HTTP error from service",
                service=self.service_name,
                method=method,
                url=url,
                status_code=e.response.status_code,
                error=e.response.text,
            )
            raise self.error_cls(
                self.service_name,
                f"HTTP {e.response.status_code}: {e.response.text}",
                status_code=e.response.status_code,
            )

        except httpx.TimeoutException as e:
            logger.error(
                "Timeout calling service",
                service=self.service_name,
                url=url,
                timeout=self.timeout_seconds,
                error=str(e),
            )
            raise self.error_cls(
                self.service_name,
                f"Request timeout after {self.timeout_seconds} seconds",
            )

        except httpx.RequestError as e:
            logger.error(
                "Connection error calling service",
                service=self.service_name,
                url=url,
                error=str(e),
            )
            raise self.error_cls(self.service_name, f"Connection error: {str(e)}")

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.request(method, url, **kwargs)
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                if 400 <= e.response.status_code < 500:
                    raise ClientRequestError(str(e), request=e.request, response=e.response) from e
                raise
            return response

    def get_circuit_status(self) -> Dict[str, Any]:
        return self.circuit_breaker.get_status()


class ResendEmailGateway:
    """Email gateway backed by the Resend REST API."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client = ServiceClient(
            service_name="Email Gateway",
            base_url=self.settings.resend_api_url,
            timeout_seconds=self.settings.email_timeout,
            circuit_breaker_config=CircuitBreakerConfig(
                failure_threshold=self.settings.email_failure_threshold,
                timeout=self.settings.circuit_breaker_timeout,
            ),
            retry_config=get_gateway_retry_config(
                self.settings.max_retry_attempts, self.settings.retry_base_delay_seconds
            ),
        )

    def ensure_configured(self) -> None:
        if not self.settings.resend_configured:
            raise ConfigError("Resend", missing=["RESEND_API_KEY"])

    async def send(self, from_: str, to: str, subject: str, text: str) -> str:
        """
        Send a plain-text email.

        Returns:
            Provider email ID

        Raises:
            ConfigError: If no Resend API key is configured
            GatewayError: If the provider rejects or fails the send
        """
        self.ensure_configured()

        response = await self.client.request(
            "POST",
            "/emails",
            headers={"Authorization": f"Bearer {self.settings.resend_api_key}"},
            json={"from": from_, "to": [to], "subject": subject, "text": text},
        )
        email_id = response.json().get("id")
        logger.info("Email accepted by provider", to=to, email_id=email_id)
        return email_id


class TwilioSMSGateway:
    """SMS gateway backed by the Twilio Messages API."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client = ServiceClient(
            service_name="SMS Gateway",
            base_url=self.settings.twilio_api_url,
            timeout_seconds=self.settings.sms_timeout,
            circuit_breaker_config=CircuitBreakerConfig(
                failure_threshold=self.settings.sms_failure_threshold,
                timeout=self.settings.circuit_breaker_timeout,
            ),
            retry_config=get_gateway_retry_config(
                self.settings.max_retry_attempts, self.settings.retry_base_delay_seconds
            ),
        )

    @property
    def configured(self) -> bool:
        return self.settings.twilio_configured

    def ensure_configured(self) -> None:
        """Raise ConfigError naming every missing Twilio credential."""
        missing = [
            name for name, value in (
                ("TWILIO_ACCOUNT_SID", self.settings.twilio_account_sid),
                ("TWILIO_AUTH_TOKEN", self.settings.twilio_auth_token),
                ("TWILIO_PHONE_NUMBER", self.settings.twilio_phone_number),
            )
            if not value
        ]
        if missing:
            raise ConfigError("Twilio", missing=missing)

    async def send(self, to: str, body: str) -> SMSReceipt:
        """
        Send an SMS.

        Raises:
            ConfigError: If Twilio credentials are missing
            GatewayError: If Twilio rejects or fails the send
        """
        self.ensure_configured()

        response = await self.client.request(
            "POST",
            f"/Accounts/{self.settings.twilio_account_sid}/Messages.json",
            auth=(self.settings.twilio_account_sid, self.settings.twilio_auth_token),
            data={"To": to, "From": self.settings.twilio_phone_number, "Body": body},
        )
        data = response.json()
        return SMSReceipt(
            sid=data["sid"],
            status=data.get("status"),
            from_number=data.get("from"),
            to_number=data.get("to"),
        )


class SupabaseFunctionsClient:
    """Shared plumbing for compute services exposed as Supabase edge functions."""

    service_name = "Compute Service"
    error_cls: Type[ComputeError] = ComputeError

    def __init__(self, settings: Optional[Settings] = None, timeout_seconds: int = 120):
        self.settings = settings or get_settings()
        base_url = self.settings.functions_url or (
            f"{self.settings.supabase_url.rstrip('/')}/functions/v1"
            if self.settings.supabase_url else ""
        )
        self.client = ServiceClient(
            service_name=self.service_name,
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            circuit_breaker_config=CircuitBreakerConfig(
                failure_threshold=self.settings.compute_failure_threshold,
                timeout=self.settings.circuit_breaker_timeout,
            ),
            retry_config=get_compute_retry_config(),
            error_cls=self.error_cls,
        )

    async def invoke(self, function_name: str, payload: Dict[str, Any]) -> httpx.Response:
        if not self.client.base_url:
            raise ConfigError(self.service_name, missing=["FUNCTIONS_URL"])
        return await self.client.request(
            "POST",
            f"/{function_name}",
            headers={"Authorization": f"Bearer {self.settings.supabase_key or ''}"},
            json=payload,
        )


class MatchComputeClient(SupabaseFunctionsClient):
    """Client for the external group-matching service."""

    service_name = "Match Service"
    error_cls = ComputeError

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        super().__init__(settings, timeout_seconds=settings.match_compute_timeout)

    async def compute(self, criteria_weights: Optional[Dict[str, float]] = None) -> MatchResult:
        response = await self.invoke("generate-matches", {"criteriaWeights": criteria_weights})
        data = response.json()
        try:
            return MatchResult(
                groups_created=data["groupsCreated"],
                members_matched=data["membersMatched"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ComputeError(self.service_name, f"Malformed match response: {e}")


class ExportComputeClient(SupabaseFunctionsClient):
    """Client for the external export-rendering service."""

    service_name = "Export Service"
    error_cls = ExportError

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        super().__init__(settings, timeout_seconds=settings.export_compute_timeout)

    async def render(self, format: str, group_ids: Optional[List[str]] = None) -> bytes:
        response = await self.invoke("export-groups", {"format": format, "groupIds": group_ids})

        if response.headers.get("content-type", "").startswith("application/json"):
            data = response.json()
            file_data = data.get("file")
            if file_data is None:
                raise ExportError(self.service_name, "Export response did not include a file")
            if data.get("encoding") == "base64":
                return base64.b64decode(file_data)
            return file_data.encode("utf-8")

        return response.content


@dataclass
class GatewaySet:
    """Capability set injected into the dispatcher and orchestrator."""

    email: EmailGateway
    sms: SMSGateway
    match_compute: MatchComputeService
    export_compute: ExportComputeService


def create_gateways(settings: Optional[Settings] = None) -> GatewaySet:
    """Build the production gateway set from settings."""
    settings = settings or get_settings()
    return GatewaySet(
        email=ResendEmailGateway(settings),
        sms=TwilioSMSGateway(settings),
        match_compute=MatchComputeClient(settings),
        export_compute=ExportComputeClient(settings),
    )
