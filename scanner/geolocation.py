import logging
from typing import Optional

import httpx

from core.models import GeoLocation

logger = logging.getLogger(__name__)

IP_API_URL = "http://ip-api.com/json/"
IP_API_FIELDS = "status,message,country,countryCode,region,city,lat,lon,isp"
DEFAULT_TIMEOUT = 10.0


class GeolocationClient:
    """ip-api.com lookup; failures are returned in GeoLocation.error"""

    def __init__(self, base_url: str = IP_API_URL, timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def lookup(self, ip: str) -> GeoLocation:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(f"{self.base_url}{ip}", params={"fields": IP_API_FIELDS})
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            logger.warning(f"Geolocation lookup for {ip} failed: {e}")
            return GeoLocation(ip=ip, error=str(e) or type(e).__name__)
        except ValueError as e:
            logger.warning(f"Geolocation response for {ip} is not JSON: {e}")
            return GeoLocation(ip=ip, error=f"invalid response: {e}")

        if not isinstance(data, dict) or data.get("status") != "success":
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(f"Geolocation lookup for {ip} unsuccessful: {message or 'lookup failed'}")
            return GeoLocation(ip=ip, error=message or "lookup failed")

        return GeoLocation(
            ip=ip,
            country=data.get("country") or "",
            country_code=data.get("countryCode") or "",
            region=data.get("region") or "",
            city=data.get("city") or "",
            latitude=float(data.get("lat") or 0.0),
            longitude=float(data.get("lon") or 0.0),
            isp=data.get("isp") or "",
        )
