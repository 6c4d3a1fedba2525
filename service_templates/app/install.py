"""
Template install: creates a Developer Console project from a template.
"""

from typing import Dict, Any, List, Optional

from shared.logging import get_logger
from shared.errors import ValidationError
from .models import ADOBEID_PLATFORMS, CredentialFlowType, TemplateInstallRequest


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


class TemplateInstaller:
    """Builds console integrations for templates.

    Console creates one credential per project, so only the template's
    first credential is used.
    """

    def __init__(self, console_client):
        self.console_client = console_client
        self.logger = get_logger("templates.installer")

    def build_services(self, template: Dict[str, Any], credential_type: str, flow_type: str,
                       request: TemplateInstallRequest) -> List[Dict[str, Any]]:
        """Services for the template APIs matching the credential."""
        license_configs = {api.code: api.licenseConfigs for api in request.apis or []}
        services = []
        for api in template.get("apis") or []:
            if _lower(api.get("flowType")) != flow_type or _lower(api.get("credentialType")) != credential_type:
                continue
            services.append({
                "sdkCode": api.get("code"),
                "atlasPlanCode": "",
                "licenseConfigs": license_configs.get(api.get("code"), []),
                "roles": [],
            })
        return services

    def build_integration(self, template: Dict[str, Any], template_id: str,
                          request: TemplateInstallRequest) -> Dict[str, Any]:
        """Integration request body for the template's credential flow."""
        credentials = template.get("credentials") or []
        if not credentials:
            raise ValidationError(
                f"Template {template.get('name')} has no credentials to install",
                details={"template_id": template_id}
            )

        credential_type = _lower(credentials[0].get("type"))
        flow_type = _lower(credentials[0].get("flowType"))

        body = {
            "name": request.projectName,
            "description": request.description or f"Created from template {template.get('name')}",
        }

        if flow_type == CredentialFlowType.ADOBEID.value:
            body["platform"] = ADOBEID_PLATFORMS.get(credential_type, credential_type)
            if request.metadata is not None:
                body.update(request.metadata.model_dump(exclude_none=True))
        elif flow_type != CredentialFlowType.ENTP.value:
            raise ValidationError(
                f'Credential flow type "{credentials[0].get("flowType")}" not supported for template install',
                details={"flow_type": credentials[0].get("flowType")}
            )

        body["templateId"] = template_id
        body["services"] = self.build_services(template, credential_type, flow_type, request)
        return body

    async def install(self, template: Dict[str, Any], template_id: str,
                      request: TemplateInstallRequest, token: str) -> Dict[str, Any]:
        """Create the console project and return its workspace configuration."""
        body = self.build_integration(template, template_id, request)
        flow_type = _lower(template["credentials"][0].get("flowType"))

        self.logger.debug("Creating console integration", template_id=template_id, flow_type=flow_type,
                          service_count=len(body["services"]))

        if flow_type == CredentialFlowType.ADOBEID.value:
            integration = await self.console_client.create_adobe_id_integration(request.orgId, body, token)
        else:
            integration = await self.console_client.create_oauth_s2s_integration(request.orgId, body, token)

        self.logger.info(
            "Console integration created",
            template_id=template_id,
            project_id=integration.get("projectId"),
            workspace_id=integration.get("workspaceId")
        )

        return await self.console_client.download_workspace_json(
            request.orgId,
            integration.get("projectId"),
            integration.get("workspaceId"),
            token
        )
