"""
Download client for the MaxMind database distributor
"""

import logging
from typing import Optional

import httpx

from ..errors import FetchError

logger = logging.getLogger("geolite.distributor")


class DistributorClient:
    """Fetches the compressed database archive using account/license basic auth"""

    def __init__(self, url: str, account_id: str, license_key: str, timeout: float = 60.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.url = url
        self.account_id = account_id
        self.license_key = license_key
        self.timeout = timeout
        self._transport = transport

    def fetch(self) -> bytes:
        if not (self.account_id and self.license_key):
            raise FetchError("distributor credentials are not configured (ACCOUNT_ID / LICENSE_KEY)")

        logger.info("Downloading database archive", extra={"component": "distributor", "url": self.url})
        try:
            # The download endpoint redirects to a signed storage URL
            with httpx.Client(timeout=self.timeout, follow_redirects=True, transport=self._transport) as client:
                r = client.get(self.url, auth=(self.account_id, self.license_key))
                r.raise_for_status()
                content = r.content
        except httpx.HTTPStatusError as e:
            raise FetchError(f"distributor returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise FetchError("distributor request timed out") from e
        except httpx.HTTPError as e:
            raise FetchError(f"distributor request failed: {e}") from e

        if not content:
            raise FetchError("distributor returned an empty archive")

        logger.info("Database archive downloaded", extra={"component": "distributor", "bytes": len(content)})
        return content
