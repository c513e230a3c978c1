"""
ecobee cloud API client.

Covers the three calls the ingester needs: refresh-token exchange, the
thermostat summary poll and the runtime report. The API wraps every answer
in a ``status`` object; code 0 is success, code 14 means the access token
expired. Expiry is returned as ``ApiStatus.TOKEN_EXPIRED`` so the caller can
refresh and retry once; every other non-zero code raises ``ApiError``.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import requests

from ecobee_telemetry.core.errors import ApiError, AuthenticationError, HttpError
from ecobee_telemetry.report.intervals import RuntimeWindow


logger = logging.getLogger(__name__)


ECOBEE_BASE_URL = "https://api.ecobee.com"

STATUS_OK = 0
STATUS_TOKEN_EXPIRED = 14

# The API answers some status-bearing errors (expired token among them)
# with HTTP 500, so both codes carry a parseable body.
_API_HTTP_CODES = (200, 500)


class ApiStatus(Enum):
    OK = "ok"
    TOKEN_EXPIRED = "token_expired"


@dataclass
class ApiResult:
    """Outcome of an API call that may need a token refresh."""

    status: ApiStatus
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is ApiStatus.OK


@dataclass
class AccessToken:
    """Token pair returned by the ``/token`` endpoint."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    scope: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessToken":
        return cls(
            access_token=str(data.get("access_token", "")),
            refresh_token=str(data.get("refresh_token", "")),
            token_type=str(data.get("token_type", "Bearer")),
            expires_in=data.get("expires_in"),
            scope=str(data.get("scope", "") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "scope": self.scope,
        }


def api_status(body: Dict[str, Any]) -> ApiStatus:
    """
    Interpret the ``status`` object of an API response.

    Raises:
        ApiError: For any code other than success or token expiry
    """
    status = body.get("status") or {}
    code = status.get("code")
    message = str(status.get("message", ""))

    if code == STATUS_OK:
        return ApiStatus.OK
    if code == STATUS_TOKEN_EXPIRED:
        logger.info(f"Access token expired: {message}")
        return ApiStatus.TOKEN_EXPIRED
    raise ApiError("ecobee API request failed", code=code, api_message=message)


def runtime_report_body(
    window: RuntimeWindow,
    columns: Sequence[str],
    thermostat_id: str,
    include_sensors: bool = True,
) -> Dict[str, Any]:
    """Request body for ``/1/runtimeReport``."""
    return {
        "startDate": window.start_date,
        "startInterval": str(window.start_interval),
        "endDate": window.end_date,
        "endInterval": str(window.end_interval),
        "columns": ",".join(columns),
        "includeSensors": include_sensors,
        "selection": {
            "selectionType": "thermostats",
            "selectionMatch": thermostat_id,
        },
    }


SUMMARY_SELECTION = {
    "selection": {
        "selectionType": "registered",
        "selectionMatch": "",
        "includeEquipmentStatus": True,
    }
}


class EcobeeClient:
    """
    Thin client for the ecobee REST API.

    No request is retried here. The only recovery the ingester performs is
    the single refresh-and-retry on token expiry, driven by the pipeline.
    """

    def __init__(
        self,
        api_key: str,
        thermostat_id: str,
        base_url: str = ECOBEE_BASE_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Application key registered with ecobee
            thermostat_id: Thermostat identifier used for report selection
            base_url: API root
            timeout: Request timeout in seconds
            session: Existing session (tests pass a mock here)
        """
        self.api_key = api_key
        self.thermostat_id = thermostat_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _auth_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json;charset=UTF-8",
            "Authorization": f"Bearer {access_token}",
        }

    def _get(self, path: str, access_token: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug(f"Request: GET {url}")

        try:
            response = self._session.get(
                url,
                headers=self._auth_headers(access_token),
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise HttpError(f"Request to {path} failed", url=url, cause=e)

        return self._handle_response(response, url)

    def _handle_response(self, response: requests.Response, url: str) -> Dict[str, Any]:
        """
        Decode an API response.

        Raises:
            HttpError: If the HTTP status is unexpected or the body is not JSON
        """
        if response.status_code not in _API_HTTP_CODES:
            raise HttpError(
                "Unexpected HTTP status from ecobee API",
                status_code=response.status_code,
                url=url,
            )
        try:
            body = response.json()
        except ValueError as e:
            raise HttpError(
                "ecobee API returned a non-JSON body",
                status_code=response.status_code,
                url=url,
                cause=e,
            )
        if not isinstance(body, dict):
            raise HttpError("ecobee API returned an unexpected body", url=url)
        return body

    def refresh_access_token(self, refresh_token: str) -> AccessToken:
        """
        Exchange a refresh token for a new token pair.

        Raises:
            AuthenticationError: If no refresh token is available
            HttpError: If the token endpoint does not answer 200
        """
        if not refresh_token:
            raise AuthenticationError("No refresh token available; run the ecobee PIN authorization first")

        url = f"{self.base_url}/token"
        logger.info("Refreshing ecobee access token")

        try:
            response = self._session.post(
                url,
                data={
                    "grant_type": "refresh_token",
                    "code": refresh_token,
                    "client_id": self.api_key,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise HttpError("Token refresh request failed", url=url, cause=e)

        if response.status_code != 200:
            raise HttpError(
                "Token refresh rejected",
                status_code=response.status_code,
                url=url,
            )

        try:
            token = AccessToken.from_dict(response.json())
        except ValueError as e:
            raise HttpError("Token endpoint returned a non-JSON body", url=url, cause=e)

        if not token.access_token:
            raise AuthenticationError("Token endpoint returned no access token")
        return token

    def thermostat_summary(self, access_token: str) -> ApiResult:
        """Poll ``/1/thermostatSummary`` for the revision list."""
        body = self._get(
            "/1/thermostatSummary",
            access_token,
            {"json": json.dumps(SUMMARY_SELECTION, separators=(",", ":"))},
        )
        return ApiResult(api_status(body), body)

    def runtime_report(
        self,
        access_token: str,
        window: RuntimeWindow,
        columns: Sequence[str],
        include_sensors: bool = True,
    ) -> ApiResult:
        """Fetch the runtime report covering ``window``."""
        request_body = runtime_report_body(window, columns, self.thermostat_id, include_sensors)
        body = self._get(
            "/1/runtimeReport",
            access_token,
            {"format": "json", "body": json.dumps(request_body, separators=(",", ":"))},
        )
        return ApiResult(api_status(body), body)


@dataclass
class RevisionEntry:
    """One ``revisionList`` entry of the thermostat summary."""

    id: str
    name: str = ""
    connected: bool = False
    thermostat_revision: str = ""
    alerts_revision: str = ""
    runtime_revision: str = ""
    interval_revision: str = ""

    @classmethod
    def parse(cls, entry: str) -> "RevisionEntry":
        """Parse ``id:name:connected:thermostatRev:alertsRev:runtimeRev:intervalRev``."""
        parts = entry.split(":")
        parts += [""] * (7 - len(parts))
        return cls(
            id=parts[0],
            name=parts[1],
            connected=parts[2] == "true",
            thermostat_revision=parts[3],
            alerts_revision=parts[4],
            runtime_revision=parts[5],
            interval_revision=parts[6],
        )


def revision_entries(summary: Dict[str, Any]) -> List[RevisionEntry]:
    return [RevisionEntry.parse(str(e)) for e in summary.get("revisionList", [])]
