"""
ACRS client: pending access requests of the calling user.
"""

import httpx
from typing import Set

from shared.logging import get_logger
from shared.errors import PendingRequestsError
from shared.circuit_breaker import get_circuit_breaker


def acrs_url(env: str) -> str:
    """ACRS base URL for a console environment."""
    return f"https://acrs{'-stage' if env == 'stage' else ''}.adobe.io"


class ACRSClient:
    """Client for the access request service."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self.logger = get_logger("templates.acrs_client")
        self.circuit_breaker = get_circuit_breaker(
            "acrs",
            failure_threshold=5,
            recovery_timeout=30.0
        )

    async def fetch_app_ids_with_pending_requests(self, user_token: str, org_id: str,
                                                  env: str, api_key: str) -> Set[str]:
        """Application ids the user has a PENDING access request for in the org."""
        url = f"{acrs_url(env)}/organization/{org_id}/app_auth_requests"
        self.logger.debug("Fetching pending requests from ACRS", url=url)

        async def _fetch():
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.get(
                    url,
                    params={"userAccountId": "self"},
                    headers={
                        "authorization": f"Bearer {user_token}",
                        "x-api-key": api_key or "",
                    }
                )

        try:
            response = await self.circuit_breaker.call(_fetch)
        except Exception as e:
            self.logger.error("Error while fetching pending requests from ACRS", org_id=org_id, error=str(e))
            raise PendingRequestsError(
                f"Failed to fetch pending requests from ACRS for org {org_id}.",
                details={"error": str(e)}
            )

        if not response.is_success:
            self.logger.error(
                "Error response from ACRS while fetching pending requests",
                org_id=org_id,
                status_code=response.status_code,
                response=response.text
            )
            raise PendingRequestsError(
                f"Failed to fetch pending requests from ACRS for org {org_id}.",
                details={"status_code": response.status_code}
            )

        pending_app_ids = set()
        for access_request in response.json():
            if access_request.get("status") != "PENDING":
                continue
            pending_app_ids.update(access_request.get("applicationIds") or [])
        return pending_app_ids
