"""
Shared configuration management for the Template Registry.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment")
    log_level: str = Field(default="info")

    # Storage
    postgres_dsn: str = Field(default="postgres://localhost:5432/template_registry")

    # Public URL used for self links
    api_url: str = Field(default="http://localhost:8020")

    # GitHub review issues
    github_api_url: str = Field(default="https://api.github.com")
    github_access_token: Optional[str] = Field(default=None)
    template_registry_org: str = Field(default="adobe")
    template_registry_repository: str = Field(default="aio-template-submission")

    # IMS
    ims_url: str = Field(default="https://ims-na1-stg1.adobelogin.com")
    ims_client_id: str = Field(default="template-registry-api")
    ims_client_secret: Optional[str] = Field(default=None)
    ims_scopes: str = Field(default="AdobeID,openid,read_organizations")
    admin_ims_organizations: str = Field(default="", description="Comma-separated orgs whose members are admins")

    # Developer console and ACRS
    console_api_url: str = Field(default="https://developers-stage.adobe.io/console")
    console_env: str = Field(default="stage", description="stage or prod")

    http_timeout_seconds: float = Field(default=10.0)

    # Tracing, disabled unless an OTLP endpoint is set
    otlp_endpoint: Optional[str] = Field(default=None)
    otlp_headers: Optional[str] = Field(default=None)

    def admin_organizations(self) -> List[str]:
        """Admin IMS organizations as a list."""
        return [org.strip() for org in self.admin_ims_organizations.split(",") if org.strip()]


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
