"""
LibreLinkUp API client with region redirects and session credentials.

Every response is wrapped in an envelope. A non-zero envelope status is a
rejection; otherwise the payload is checked for a region redirect, in which
case the client switches base URL and re-issues the same request once.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from pydantic import TypeAdapter, ValidationError

from .config import Settings
from .constants import (
    API_PRODUCT,
    API_VERSION,
    CONNECTIONS_ENDPOINT,
    DEFAULT_BASE_URL,
    DEFAULT_HTTP_TIMEOUT,
    GRAPH_ENDPOINT_TEMPLATE,
    LOGIN_ENDPOINT,
    MAX_REDIRECTS,
    REGION_BASE_URL_TEMPLATE,
    REGION_PATTERN,
)
from .exceptions import (
    AuthError,
    DeadlineExceededError,
    ProtocolError,
    RemoteRejectionError,
    RequestError,
    TransportError,
)
from .logging_utils import redact_sensitive_data
from .metrics import (
    librelink_api_call_latency_seconds,
    librelink_api_call_total,
    librelink_region_redirects_total,
)
from .models import (
    AuthResponse,
    Connection,
    Envelope,
    GlucoseMeasurement,
    GraphData,
    RedirectPayload,
    SessionCredentials,
)

logger = logging.getLogger(__name__)

_AUTH_RESPONSE = TypeAdapter(AuthResponse)
_CONNECTIONS = TypeAdapter(List[Connection])
_GRAPH_DATA = TypeAdapter(GraphData)


def resolve_base_url(region: str) -> str:
    """
    Return the base URL serving *region*, or the global one for an empty region.

    Raises:
        ValueError: If the region cannot be used as a host name label
    """
    region = (region or "").strip().lower()
    if not region:
        return DEFAULT_BASE_URL
    if not REGION_PATTERN.fullmatch(region):
        raise ValueError(f"Invalid region '{region}'")
    return REGION_BASE_URL_TEMPLATE.format(region=region)


@dataclass
class ClientConfig:
    """
    Client configuration with validation.

    Built once before the client, usually from application Settings.
    """
    email: str
    password: str
    credentials: Optional[SessionCredentials] = None
    timeout: float = DEFAULT_HTTP_TIMEOUT
    base_url: str = DEFAULT_BASE_URL

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.email:
            raise ValueError("email is required")
        if not self.password:
            raise ValueError("password is required")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

        self.base_url = self.base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClientConfig":
        """
        Create configuration from application settings.

        Args:
            settings: Application settings with LibreLinkUp credentials

        Returns:
            ClientConfig instance
        """
        return cls(
            email=settings.librelink_username,
            password=settings.librelink_password,
            credentials=settings.session_credentials(),
            timeout=settings.http_timeout_seconds,
        )


class LibreLinkClient:
    """
    Client for the LibreLinkUp follower API.

    Features:
    - Session credentials: held in memory, set by authenticate() or supplied up front
    - Region redirects: followed transparently, at most MAX_REDIRECTS hops per request
    - Deadlines: every call accepts an absolute time.monotonic() deadline

    No locking is done; concurrent callers may authenticate redundantly.
    """

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        """
        Initialize the LibreLinkUp client.

        Args:
            config: Client configuration
            session: HTTP session to use, a new one is created if omitted
        """
        self.config = config
        self._session = session or requests.Session()
        self._base_url = config.base_url
        self._credentials: Optional[SessionCredentials] = config.credentials

        if self._credentials is not None:
            logger.info(
                "Using provided credentials",
                extra={
                    "expires": self._credentials.expires.isoformat() if self._credentials.expires else None,
                }
            )

    @property
    def base_url(self) -> str:
        """Currently resolved base URL."""
        return self._base_url

    @property
    def credentials(self) -> Optional[SessionCredentials]:
        return self._credentials

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "LibreLinkClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # Public API
    # =========================================================================

    def is_authenticated(self) -> bool:
        """Whether credentials are held. Expiry is not checked."""
        return self._credentials is not None

    def authenticate(self, deadline: Optional[float] = None) -> SessionCredentials:
        """
        Log in with the configured email and password.

        Args:
            deadline: Optional time.monotonic() value after which to give up

        Returns:
            The new session credentials, which are also stored on the client

        Raises:
            AuthError: If the request fails, is rejected or cannot be decoded
        """
        logger.info("Authenticating with LibreLinkUp", extra={"base_url": self._base_url})

        body = {"email": self.config.email, "password": self.config.password}
        try:
            envelope = self._do_request("POST", LOGIN_ENDPOINT, body=body, deadline=deadline)
            auth = self._decode_payload(envelope, _AUTH_RESPONSE, LOGIN_ENDPOINT)
        except RequestError as e:
            raise AuthError(
                details=f"Base URL: {self._base_url}",
                original_error=e,
            )

        self._credentials = SessionCredentials.from_user(
            auth.user.id,
            auth.auth_ticket.token,
            auth.auth_ticket.expires,
        )

        logger.info(
            "Authenticated with LibreLinkUp",
            extra={
                "base_url": self._base_url,
                "expires": auth.auth_ticket.expires.isoformat() if auth.auth_ticket.expires else None,
            }
        )
        return self._credentials

    def get_connections(self, deadline: Optional[float] = None) -> List[Connection]:
        """
        List the connections followed by the account.

        Raises:
            RequestError: If the request fails, is rejected or cannot be decoded
        """
        envelope = self._do_request("GET", CONNECTIONS_ENDPOINT, deadline=deadline)
        return self._decode_payload(envelope, _CONNECTIONS, CONNECTIONS_ENDPOINT)

    def get_graph_data(self, connection_id: str, deadline: Optional[float] = None) -> GraphData:
        """
        Fetch the current reading and recent history for one connection.

        Raises:
            RequestError: If the request fails, is rejected or cannot be decoded
        """
        endpoint = GRAPH_ENDPOINT_TEMPLATE.format(connection_id=connection_id)
        envelope = self._do_request(
            "GET",
            endpoint,
            deadline=deadline,
            metric_endpoint=GRAPH_ENDPOINT_TEMPLATE,
        )
        return self._decode_payload(envelope, _GRAPH_DATA, endpoint)

    def get_latest_reading(self, connection_id: str, deadline: Optional[float] = None) -> GlucoseMeasurement:
        """
        Fetch only the current reading for one connection.

        Raises:
            ProtocolError: If the connection has no current reading
            RequestError: If the request fails for any other reason
        """
        graph = self.get_graph_data(connection_id, deadline=deadline)
        if graph.current is None:
            raise ProtocolError(
                message="No current glucose reading available",
                details=f"Connection: {connection_id}",
            )
        return graph.current

    # =========================================================================
    # Request Handling
    # =========================================================================

    def _prepare_headers(self) -> Dict[str, str]:
        """Build the headers sent with every request."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "product": API_PRODUCT,
            "version": API_VERSION,
            "cache-control": "no-cache",
            "connection": "Keep-Alive",
        }

        credentials = self._credentials
        if credentials is not None:
            headers["account-id"] = credentials.account_id
            headers["Authorization"] = f"Bearer {credentials.token}"
        else:
            logger.debug("No credentials available, proceeding without authentication")

        return headers

    def _request_timeout(self, endpoint: str, deadline: Optional[float]) -> float:
        """Per-request timeout, shortened to fit the deadline."""
        if deadline is None:
            return self.config.timeout

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DeadlineExceededError(endpoint)
        return min(self.config.timeout, remaining)

    def _do_request(
        self,
        method: str,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
        deadline: Optional[float] = None,
        metric_endpoint: Optional[str] = None,
    ) -> Envelope:
        """
        Send a request, following region redirects.

        Returns:
            The success envelope whose payload is not a redirect

        Raises:
            ProtocolError: If redirected more than MAX_REDIRECTS times
            RequestError: If any attempt fails
        """
        for _ in range(MAX_REDIRECTS + 1):
            envelope = self._send(method, endpoint, body, deadline, metric_endpoint or endpoint)
            if not self._handle_redirect(envelope):
                return envelope

            logger.info(
                "Redirected to new region, retrying request",
                extra={
                    "method": method,
                    "endpoint": endpoint,
                    "new_base_url": self._base_url,
                }
            )

        raise ProtocolError(
            message="Redirected again after following a region redirect",
            details=f"Endpoint: {endpoint}, base URL: {self._base_url}",
        )

    def _send(
        self,
        method: str,
        endpoint: str,
        body: Optional[Dict[str, Any]],
        deadline: Optional[float],
        metric_endpoint: str,
    ) -> Envelope:
        """Issue a single HTTP request and unwrap the envelope."""
        url = f"{self._base_url}/{endpoint}"
        timeout = self._request_timeout(endpoint, deadline)
        headers = self._prepare_headers()

        logger.debug(
            "LibreLinkUp API request",
            extra={
                "method": method,
                "url": url,
                "headers": redact_sensitive_data(headers),
                "body": redact_sensitive_data(body) if body else None,
                "timeout": timeout,
            }
        )

        start_time = time.monotonic()
        status = "error"
        try:
            try:
                response = self._session.request(
                    method,
                    url,
                    headers=headers,
                    json=body,
                    timeout=timeout,
                )
            except requests.exceptions.Timeout as e:
                if timeout < self.config.timeout:
                    raise DeadlineExceededError(endpoint, original_error=e)
                raise TransportError(
                    message="Timeout contacting LibreLinkUp",
                    details=f"URL: {url}",
                    original_error=e,
                )
            except requests.exceptions.RequestException as e:
                raise TransportError(details=f"URL: {url}", original_error=e)

            envelope = self._parse_envelope(response, url)
            status = "success"
            return envelope
        finally:
            latency = time.monotonic() - start_time
            librelink_api_call_latency_seconds.labels(method=method, endpoint=metric_endpoint).observe(latency)
            librelink_api_call_total.labels(method=method, endpoint=metric_endpoint, status=status).inc()

    def _parse_envelope(self, response: requests.Response, url: str) -> Envelope:
        """
        Decode the response envelope.

        Raises:
            RemoteRejectionError: On a non-200 HTTP status or a non-zero envelope status
            ProtocolError: If the body is not a valid envelope
        """
        if response.status_code == 401 and self._credentials is not None:
            logger.warning(
                "LibreLinkUp rejected the session, dropping credentials",
                extra={"url": url}
            )
            self._credentials = None

        if response.status_code != 200:
            raise RemoteRejectionError(
                message=f"Unexpected HTTP status {response.status_code}",
                http_status=response.status_code,
            )

        try:
            raw = response.json()
        except ValueError as e:
            raise ProtocolError(
                message="Failed to decode response body",
                details=f"URL: {url}",
                original_error=e,
            )

        logger.debug(
            "LibreLinkUp API response",
            extra={
                "url": url,
                "status_code": response.status_code,
                "body": redact_sensitive_data(raw),
            }
        )

        try:
            envelope = Envelope.model_validate(raw)
        except ValidationError as e:
            raise ProtocolError(
                message="Malformed response envelope",
                details=f"URL: {url}",
                original_error=e,
            )

        if envelope.status != 0:
            message = "LibreLinkUp rejected the request"
            if envelope.error is not None and envelope.error.message:
                message = envelope.error.message
            raise RemoteRejectionError(status=envelope.status, message=message)

        return envelope

    def _handle_redirect(self, envelope: Envelope) -> bool:
        """
        Switch base URL if the envelope asks for a region redirect.

        Returns:
            True if the request must be re-issued against the new base URL

        Raises:
            ProtocolError: If a redirect names no region or an invalid one
        """
        try:
            redirect = RedirectPayload.model_validate(envelope.data)
        except ValidationError:
            return False

        if not redirect.redirect:
            return False

        if not redirect.region.strip():
            raise ProtocolError(
                message="Redirect requested but no region provided",
                details=f"Base URL: {self._base_url}",
            )

        try:
            self._base_url = resolve_base_url(redirect.region)
        except ValueError as e:
            raise ProtocolError(
                message="Redirect requested to an invalid region",
                details=f"Region: {redirect.region!r}",
                original_error=e,
            )
        librelink_region_redirects_total.labels(region=redirect.region).inc()
        return True

    def _decode_payload(self, envelope: Envelope, adapter: TypeAdapter, endpoint: str) -> Any:
        """Validate the envelope payload against the expected shape."""
        try:
            return adapter.validate_python(envelope.data)
        except ValidationError as e:
            raise ProtocolError(
                message="Failed to decode response payload",
                details=f"Endpoint: {endpoint}",
                original_error=e,
            )
