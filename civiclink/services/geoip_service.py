"""
civiclink/services/geoip_service.py

Purpose: Geo-IP lookups (ipinfo.io)

- Resolves an IP address to country, region and city
- Single shared httpx client with a bounded timeout
- No retries; failures surface as ExternalProviderError
"""

import httpx
from typing import Optional
from pydantic import BaseModel

from civiclink.core.config import settings
from civiclink.core.exceptions import ExternalProviderError
from civiclink.core.logging import get_logger

logger = get_logger(__name__)


class GeoIPResult(BaseModel):
    ip: str
    country: str = ""
    region: str = ""
    city: str = ""

    @property
    def raw(self) -> str:
        """Human-readable "country, region, city" string stored on the user."""
        return ", ".join(part for part in (self.country, self.region, self.city) if part)


class GeoIPService:
    """
    Client for an ipinfo.io compatible geo-IP API.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = (base_url or settings.GEOIP_BASE_URL).rstrip("/")
        self._token = token if token is not None else settings.GEOIP_TOKEN
        self._timeout = timeout or settings.GEOIP_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def lookup(self, ip: str) -> GeoIPResult:
        """
        Looks up an IP address.

        Args:
            ip: IPv4 or IPv6 address

        Returns:
            GeoIPResult (fields empty when the provider omits them)

        Raises:
            ExternalProviderError: On timeout, network error or bad response
        """
        params = {"token": self._token} if self._token else None

        try:
            response = await self._get_client().get(f"/{ip}", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Geo-IP lookup timed out for {ip}")
            raise ExternalProviderError("Geo-IP service timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Geo-IP lookup for {ip} failed with status {e.response.status_code}"
            )
            raise ExternalProviderError("Geo-IP service returned an error") from e
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"Geo-IP lookup for {ip} failed: {e}")
            raise ExternalProviderError("Unable to reach geo-IP service") from e

        logger.debug(f"Geo-IP response for {ip}: {data}")

        return GeoIPResult(
            ip=data.get("ip") or ip,
            country=data.get("country") or "",
            region=data.get("region") or "",
            city=data.get("city") or "",
        )

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Global geo-IP service instance
_geoip_service: Optional[GeoIPService] = None


def get_geoip_service() -> GeoIPService:
    """Get or create the global geo-IP service instance."""
    global _geoip_service
    if _geoip_service is None:
        _geoip_service = GeoIPService()
    return _geoip_service


async def close_geoip_service():
    """Close the geo-IP client and release connections."""
    global _geoip_service
    if _geoip_service:
        await _geoip_service.close()
        _geoip_service = None
