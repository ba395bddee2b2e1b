"""Internet reachability probe using well-known captive-portal endpoints."""

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINTS: list[tuple[str, int]] = [
    ("http://connectivitycheck.gstatic.com/generate_204", 204),
    ("http://www.msftconnecttest.com/connecttest.txt", 200),
    ("http://captive.apple.com/hotspot-detect.html", 200),
]


class ConnectivityChecker:
    """Checks whether the current connection reaches the internet.

    A captive portal answers these endpoints with a redirect, so redirects
    are not followed and only the exact expected status counts.

    Usage:
        checker = ConnectivityChecker()
        if await checker.check():
            ...
    """

    def __init__(
        self,
        endpoints: list[tuple[str, int]] | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoints = list(endpoints or DEFAULT_ENDPOINTS)
        self.timeout = timeout
        self._transport = transport

    async def check(self) -> bool:
        """True as soon as one endpoint answers with its expected status."""
        for url, expected_status in self.endpoints:
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self._transport
                ) as client:
                    response = await client.get(url, follow_redirects=False)
                    if response.status_code == expected_status:
                        return True
                    logger.debug(
                        "Connectivity check %s returned %d", url, response.status_code
                    )
            except httpx.HTTPError as e:
                logger.debug("Connectivity check %s failed: %s", url, e)
                continue

        return False
