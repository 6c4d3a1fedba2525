"""
IMS client for the Template Registry.
"""

import httpx
import jwt
from typing import Dict, Any, List, Optional, Sequence

from shared.logging import get_logger
from shared.errors import AuthenticationError, ExternalServiceError
from shared.circuit_breaker import get_circuit_breaker, CircuitBreakerOpenException
from shared.retry import retry_on_exception, RetryConfig, RetryError

SERVICE_ACCOUNT_SUFFIX = "@AdobeService"


class IMSClient:
    """Client for the IMS identity service."""

    def __init__(self, ims_url: str, client_id: str, client_secret: Optional[str] = None,
                 scopes: str = "", timeout: float = 10.0):
        self.ims_url = ims_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = scopes
        self.timeout = timeout
        self.logger = get_logger("templates.ims_client")
        self.circuit_breaker = get_circuit_breaker(
            "ims",
            failure_threshold=5,
            recovery_timeout=30.0
        )

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5))
    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, f"{self.ims_url}{path}", **kwargs)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.circuit_breaker.call(self._send, method, path, **kwargs)
        except (RetryError, CircuitBreakerOpenException) as e:
            self.logger.error("IMS unavailable", path=path, error=str(e))
            raise ExternalServiceError("ims", "IMS unavailable", details={"error": str(e)})

    async def validate_token(self, token: str) -> Dict[str, Any]:
        """Validate an access token, raising AuthenticationError if IMS rejects it."""
        response = await self._request(
            "GET",
            "/ims/validate_token/v1",
            params={"client_id": self.client_id, "type": "access_token"},
            headers={
                "Authorization": f"Bearer {token}",
                "X-IMS-ClientId": self.client_id,
            }
        )

        try:
            result = response.json()
        except ValueError:
            result = {}

        if response.status_code != 200 or not result.get("valid"):
            reason = result.get("reason", f"status {response.status_code}")
            self.logger.warning("Token validation failed", reason=reason)
            raise AuthenticationError(
                f"Provided IMS access token is invalid. Reason: {reason}",
                details={"reason": reason}
            )

        return result

    async def get_organizations(self, token: str) -> List[Dict[str, Any]]:
        """Organizations the token's user belongs to."""
        response = await self._request(
            "GET",
            "/ims/organizations/v6",
            headers={
                "Authorization": f"Bearer {token}",
                "X-IMS-ClientId": self.client_id,
            }
        )
        if response.status_code != 200:
            raise ExternalServiceError(
                "ims",
                f"Failed to fetch organizations: {response.status_code}",
                details={"status_code": response.status_code}
            )
        return response.json()

    async def is_admin(self, token: str, admin_organizations: Sequence[str]) -> bool:
        """Whether the user belongs to one of the admin organizations."""
        if not admin_organizations:
            return False
        organizations = await self.get_organizations(token)
        for organization in organizations:
            org_ref = organization.get("orgRef") or {}
            if f"{org_ref.get('ident')}@{org_ref.get('authSrc')}" in admin_organizations:
                return True
        return False

    async def generate_access_token(self) -> str:
        """Obtain a service access token with the configured client credentials."""
        response = await self._request(
            "POST",
            "/ims/token/v3",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret or "",
                "scope": self.scopes,
            }
        )
        if response.status_code != 200:
            self.logger.error("Service token generation failed", status_code=response.status_code)
            raise ExternalServiceError(
                "ims",
                f"Failed to generate access token: {response.status_code}",
                details={"status_code": response.status_code}
            )
        return response.json()["access_token"]


def get_token_data(token: str) -> Dict[str, Any]:
    """Claims of an IMS token, without signature verification.

    Only call this for tokens IMS has already validated, or for logging.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}


def is_valid_service_token(token: str, required_scopes: Sequence[str]) -> bool:
    """Whether a validated token belongs to a technical account holding every required scope."""
    claims = get_token_data(token)
    if not str(claims.get("user_id", "")).endswith(SERVICE_ACCOUNT_SUFFIX):
        return False
    scopes = {scope.strip() for scope in str(claims.get("scope", "")).split(",")}
    return all(scope in scopes for scope in required_scopes)
