"""HTTP client for the 2Chat WhatsApp ``check-number`` endpoint."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from .models import VerificationOutcome

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.p.2chat.io/open/whatsapp/check-number"
DEFAULT_USER_AGENT = "2Chat Bulk Verifier"
DEFAULT_TIMEOUT_SECONDS = 30.0
API_KEY_HEADER = "X-User-API-Key"

# Unauthorized, payment/quota exhausted, unknown source number or endpoint.
FATAL_STATUS_CODES = frozenset({401, 402, 404})


class VerificationError(Exception):
    """Base class for failures while verifying a single phone number."""

    fatal = False

    def __init__(self, message: str, *, phone: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.phone = phone
        self.status = status

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


class TransportError(VerificationError):
    """No HTTP response was received (connection failure, timeout, ...)."""


class TransientAPIError(VerificationError):
    """The API answered with a non-success status the run can live with."""


class FatalAPIError(VerificationError):
    """The API answered with a status that makes the rest of the run pointless."""

    fatal = True


class VerificationClient:
    """Performs one ``check-number`` request per phone number."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ValueError("An API key is required to call the verification API")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._session = session or requests.Session()

    def __enter__(self) -> "VerificationClient":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def build_url(self, phone_key: str, source_number: str) -> str:
        return f"{self._base_url}/{quote(source_number, safe='+')}/{quote(phone_key, safe='+')}"

    def verify(self, phone_key: str, source_number: str) -> VerificationOutcome:
        """Return the outcome for ``phone_key`` checked from ``source_number``."""

        return VerificationOutcome.from_response(self.verify_raw(phone_key, source_number))

    def verify_raw(self, phone_key: str, source_number: str) -> Dict[str, Any]:
        """Perform the request and return the raw JSON body.

        Raises :class:`TransportError`, :class:`TransientAPIError` or
        :class:`FatalAPIError` depending on how the call failed.
        """

        if not phone_key:
            raise ValueError("phone_key must not be empty")
        if not source_number:
            raise ValueError("source_number must not be empty")

        url = self.build_url(phone_key, source_number)
        headers = {API_KEY_HEADER: self._api_key, "User-Agent": self._user_agent}
        LOGGER.info("Trying to verify number=[%s] using source=[%s]", phone_key, source_number)
        LOGGER.debug("GET %s", url)

        try:
            response = self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            LOGGER.warning("Transport error while checking number=[%s]: %s", phone_key, exc)
            raise TransportError(str(exc), phone=phone_key) from exc

        if not response.ok:
            raise self._classify(phone_key, response)

        try:
            body = response.json()
        except ValueError as exc:
            LOGGER.warning("Invalid JSON body for number=[%s]: %s", phone_key, exc)
            raise TransientAPIError(
                "Response body is not valid JSON", phone=phone_key, status=response.status_code
            ) from exc

        if not isinstance(body, dict):
            LOGGER.warning("Unexpected response body for number=[%s]: %r", phone_key, body)
            raise TransientAPIError(
                "Response body is not a JSON object", phone=phone_key, status=response.status_code
            )
        return body

    def _classify(self, phone_key: str, response: requests.Response) -> VerificationError:
        status = response.status_code
        reason = response.reason or ""
        detail = _response_detail(response)
        message = f"API error: status=[{status}] reason=[{reason}] {detail}".rstrip()

        if status in FATAL_STATUS_CODES:
            LOGGER.error("%s (number=[%s])", message, phone_key)
            return FatalAPIError(message, phone=phone_key, status=status)

        LOGGER.warning("%s (number=[%s])", message, phone_key)
        LOGGER.warning("Checking number=%s failed. Please retry later.", phone_key)
        return TransientAPIError(message, phone=phone_key, status=status)


def _response_detail(response: requests.Response) -> str:
    try:
        return str(response.json())
    except ValueError:
        return (response.text or "")[:200]
