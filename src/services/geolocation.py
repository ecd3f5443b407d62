"""Best-effort IP geolocation."""
import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    """Coarse location resolved from an IP address."""

    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.country or self.region or self.city)

    def as_key(self) -> Optional[str]:
        """Location as ``country:region:city`` with empty parts dropped."""
        parts = [p for p in (self.country, self.region, self.city) if p]
        return ":".join(parts) if parts else None


EMPTY_LOCATION = Location()


class GeoLocationResolver:
    """
    Resolve IP addresses through an HTTP lookup service.

    ``lookup_url`` is a template containing ``{ip}``, for example
    ``https://ipapi.example/json/{ip}``. The response must be JSON with
    ``country``, ``region`` (or ``regionName``) and ``city`` keys.
    Lookups never raise: any failure yields an empty location.
    """

    def __init__(
        self,
        lookup_url: Optional[str] = "",
        timeout: Optional[float] = 2.0,
        session=None,
    ):
        self._lookup_url = lookup_url or ""
        self._timeout = float(timeout or 2.0)
        self._http = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self._lookup_url)

    def resolve(self, ip_address: Optional[str]) -> Location:
        """
        Resolve an IP address.

        Args:
            ip_address: IPv4/IPv6 address as sent by the client

        Returns:
            Location, empty when unknown
        """
        if not ip_address or not self.enabled:
            return EMPTY_LOCATION

        try:
            parsed = ipaddress.ip_address(ip_address)
        except ValueError:
            logger.debug(f"Not an IP address, skipping geolocation: {ip_address!r}")
            return EMPTY_LOCATION

        if parsed.is_private or parsed.is_loopback or parsed.is_reserved:
            return EMPTY_LOCATION

        try:
            response = self._http.get(
                self._lookup_url.format(ip=ip_address), timeout=self._timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Geolocation lookup failed for {ip_address}: {e}")
            return EMPTY_LOCATION

        if not isinstance(payload, dict) or payload.get("status") == "fail":
            return EMPTY_LOCATION

        return Location(
            country=payload.get("country") or None,
            region=payload.get("region") or payload.get("regionName") or None,
            city=payload.get("city") or None,
        )
