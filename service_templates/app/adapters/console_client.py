"""
Developer Console client for the Template Registry.
"""

import httpx
from typing import Dict, Any, Optional, Sequence

from shared.logging import get_logger
from shared.errors import ExternalServiceError
from shared.circuit_breaker import get_circuit_breaker, CircuitBreakerOpenException
from shared.retry import retry_on_exception, RetryConfig, RetryError


class ConsoleClient:
    """Client for the Developer Console API."""

    def __init__(self, console_api_url: str, api_key: str, timeout: float = 10.0):
        self.console_api_url = console_api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.logger = get_logger("templates.console_client")
        self.circuit_breaker = get_circuit_breaker(
            "console",
            failure_threshold=5,
            recovery_timeout=30.0
        )

    def _headers(self, token: str, api_key: Optional[str] = None) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "x-api-key": api_key or self.api_key,
        }

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5))
    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, f"{self.console_api_url}{path}", **kwargs)

    async def _request(self, method: str, path: str, operation: str, **kwargs) -> Any:
        try:
            response = await self.circuit_breaker.call(self._send, method, path, **kwargs)
        except (RetryError, CircuitBreakerOpenException) as e:
            self.logger.error("Console unavailable", operation=operation, error=str(e))
            raise ExternalServiceError("console", f"{operation} failed: console unavailable",
                                       details={"error": str(e)})

        if response.status_code not in (200, 201):
            self.logger.error(
                "Console request failed",
                operation=operation,
                status_code=response.status_code
            )
            raise ExternalServiceError(
                "console",
                f"{operation} failed with status {response.status_code}",
                details={"status_code": response.status_code, "body": response.text}
            )

        return response.json()

    async def get_services_for_org(self, org_id: str, sdk_codes: str, token: str,
                                   api_key: Optional[str] = None) -> Any:
        """Services of an organization with the user's entitlement to each.

        `sdk_codes` is a comma-separated list. The response body is returned
        as is, normally `{"services": [...]}`.
        """
        return await self._request(
            "GET",
            f"/organizations/{org_id}/services",
            "getServicesForOrg",
            params={"sdkCodes": sdk_codes},
            headers=self._headers(token, api_key)
        )

    async def get_project_install_config(self, project_id: str, token: str) -> Dict[str, Any]:
        """Credentials and services configured on a console project."""
        return await self._request(
            "GET",
            f"/projects/{project_id}/installConfig",
            "getProjectInstallConfig",
            headers=self._headers(token)
        )

    async def create_adobe_id_integration(self, org_id: str, body: Dict[str, Any], token: str) -> Dict[str, Any]:
        """Create a project with an AdobeID credential."""
        return await self._request(
            "POST",
            f"/organizations/{org_id}/integrations/adobeid",
            "createAdobeIdIntegration",
            json=body,
            headers=self._headers(token)
        )

    async def create_oauth_s2s_integration(self, org_id: str, body: Dict[str, Any], token: str) -> Dict[str, Any]:
        """Create a project with an OAuth server-to-server credential."""
        return await self._request(
            "POST",
            f"/organizations/{org_id}/integrations/oauth_server_to_server",
            "createOauthS2SCredentialIntegration",
            json=body,
            headers=self._headers(token)
        )

    async def download_workspace_json(self, org_id: str, project_id: str, workspace_id: str,
                                      token: str) -> Dict[str, Any]:
        """Workspace configuration of a created project."""
        return await self._request(
            "GET",
            f"/organizations/{org_id}/projects/{project_id}/workspaces/{workspace_id}/download",
            "downloadWorkspaceJson",
            headers=self._headers(token)
        )


def install_config_to_template_fields(install_config: Dict[str, Any]) -> Dict[str, Any]:
    """Derive template `credentials` and `apis` from a project install config."""
    credentials = []
    apis = []
    for credential in install_config.get("credentials") or []:
        credentials.append({
            "type": credential.get("type"),
            "flowType": credential.get("flowType"),
        })
        for api in credential.get("apis") or []:
            apis.append({
                "credentialType": credential.get("type"),
                "flowType": credential.get("flowType"),
                "code": api.get("code"),
            })
    return {"credentials": credentials, "apis": apis}


def project_id_from_url(console_project_url: str) -> str:
    """Project id from a console project link such as `.../projects/<org>/<id>/overview`."""
    parts = console_project_url.split("/")
    if len(parts) < 2:
        return console_project_url
    return parts[-2]
