"""Name-to-identifier lookups against the management API.

The injector needs a few identifiers it only knows by display name: the
organization and location a test runs in, and the IP address of the
gateway that hosts the MQTT broker. Lookups return an empty string when
nothing matches; the miss is logged rather than raised.
"""

import logging
from typing import Any, Optional

import requests

from handset_injector.config import ApiConfig

logger = logging.getLogger(__name__)

ORGANIZATIONS_ENDPOINT = "organizations/options?accountId="
LOCATIONS_ENDPOINT = "locations/options?organizationId="
GATEWAY_SUMMARY_ENDPOINT = (
    "api/administration/locations/gateway-summary"
    "?start=0&length=50&sortField=gateway_name&sortOrder=ASC"
)


class ContextLookup:
    """Resolves organizations, locations and gateway addresses by name."""

    def __init__(self, config: Optional[ApiConfig] = None, session: Optional[requests.Session] = None):
        """
        Initialize the lookup client.

        Args:
            config: API location and credentials
            session: HTTP session to reuse; one is created on first request if None
        """
        self.config = config or ApiConfig()
        self._session = session

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            if self.config.token:
                self._session.headers.update({"Authorization": f"Bearer {self.config.token}"})
        return self._session

    def _get(self, endpoint: str) -> Optional[Any]:
        """GET an endpoint and decode its JSON body; None on any failure."""
        if not self.config.base_url:
            logger.error("No API base URL configured; cannot request %s", endpoint)
            return None

        url = f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        try:
            response = self._get_session().get(url, timeout=self.config.timeout_seconds)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error("Request to %s failed: %s", url, e)
        except ValueError as e:
            logger.error("Response from %s was not valid JSON: %s", url, e)
        return None

    def _find_option(self, endpoint: str, name: str) -> str:
        options = self._get(endpoint)
        if not isinstance(options, list):
            return ""
        for option in options:
            if str(option.get("text", "")).lower() == name.lower():
                return str(option.get("value", ""))
        return ""

    def organization_id(self, name: str) -> str:
        """Organization id for a display name, or "" if none matches."""
        organization_id = self._find_option(ORGANIZATIONS_ENDPOINT, name)
        if not organization_id:
            logger.error("Could not find an org with: %s", name)
        return organization_id

    def location_id(self, name: str) -> str:
        """Location id (lower-cased) for a display name, or "" if none matches."""
        location_id = self._find_option(LOCATIONS_ENDPOINT, name).lower()
        if not location_id:
            logger.error("No location ID was found for '%s'", name)
        return location_id

    def gateway_address(self, location_name: Optional[str] = None) -> str:
        """
        IP address of the gateway serving a location.

        Matches the first gateway whose tenant name contains
        ``location_name`` (defaults to the configured location).
        """
        location_name = location_name or self.config.location_name
        if not location_name:
            logger.error("No location name given for the gateway lookup")
            return ""

        body = self._get(GATEWAY_SUMMARY_ENDPOINT)
        gateways = body.get("data") if isinstance(body, dict) else None
        if not gateways:
            logger.error("No gateway data present for location '%s'", location_name)
            return ""

        for gateway in gateways:
            if location_name in str(gateway.get("tenant_name", "")):
                address = gateway.get("gateway_ip_address") or ""
                logger.info("Found gateway %s for location '%s'", address, location_name)
                return str(address)

        logger.error("No gateway found for location '%s'", location_name)
        return ""

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
