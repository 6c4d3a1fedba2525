"""
Template data models for the Template Registry Service.
"""

from enum import Enum
from typing import Dict, Any, Optional, List

from pydantic import BaseModel, ConfigDict, Field


class TemplateStatus(str, Enum):
    """Template review status."""
    IN_VERIFICATION = "InVerification"
    APPROVED = "Approved"
    REJECTED = "Rejected"


REVIEWABLE_STATUSES = (TemplateStatus.IN_VERIFICATION.value, TemplateStatus.REJECTED.value)


class CredentialFlowType(str, Enum):
    """Credential flow types supported by template install."""
    ADOBEID = "adobeid"
    ENTP = "entp"


# AdobeID credential type -> console platform
ADOBEID_PLATFORMS: Dict[str, str] = {
    "apikey": "apiKey",
    "oauthnativeapp": "NativeApp",
    "oauthwebapp": "WebApp",
    "oauthsinglepageapp": "SinglePageApp",
}


class TemplateApi(BaseModel):
    """A service API required by a template."""
    model_config = ConfigDict(extra="allow")

    code: str = Field(..., description="Service SDK code")
    credentialType: Optional[str] = None
    flowType: Optional[str] = None
    licenseConfigs: Optional[List[Dict[str, Any]]] = None


class TemplateCredential(BaseModel):
    """A credential a template's project needs."""
    model_config = ConfigDict(extra="allow")

    type: str
    flowType: str


class TemplateLinks(BaseModel):
    """Links of a template."""
    model_config = ConfigDict(extra="allow")

    github: Optional[str] = None
    npm: Optional[str] = None
    consoleProject: Optional[str] = None


class TemplateBase(BaseModel):
    """Fields shared by template create and update requests."""
    model_config = ConfigDict(extra="allow")

    description: Optional[str] = None
    latestVersion: Optional[str] = None
    publishDate: Optional[str] = None
    author: Optional[str] = None
    status: Optional[TemplateStatus] = None
    adobeRecommended: Optional[bool] = None
    runtime: Optional[bool] = None
    keywords: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    extensions: Optional[List[Dict[str, Any]]] = None
    apis: Optional[List[TemplateApi]] = None
    credentials: Optional[List[TemplateCredential]] = None
    links: Optional[TemplateLinks] = None
    codeSamples: Optional[List[Dict[str, Any]]] = None
    requestAccessAppId: Optional[str] = None
    createdBy: Optional[str] = None
    updatedBy: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """Fields that were sent, as stored in a template document."""
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


class TemplateCreateRequest(TemplateBase):
    """Request model for template creation."""
    name: Optional[str] = Field(None, description="Unique template name, may be scoped as org/name")


class TemplateUpdateRequest(TemplateBase):
    """Request model for template update; every field is optional."""
    name: Optional[str] = None


class InstallMetadata(BaseModel):
    """AdobeID credential settings for an installed project."""
    urlScheme: Optional[str] = None
    redirectUriList: Optional[List[str]] = None
    defaultRedirectUri: Optional[str] = None
    domain: Optional[str] = None


class InstallApi(BaseModel):
    """License configuration chosen for one template API."""
    model_config = ConfigDict(extra="allow")

    code: str
    licenseConfigs: List[Dict[str, Any]] = Field(default_factory=list)


class TemplateInstallRequest(BaseModel):
    """Request model for template install."""
    orgId: str = Field(..., description="IMS org to create the project in")
    projectName: str = Field(..., min_length=1)
    description: Optional[str] = None
    metadata: Optional[InstallMetadata] = None
    apis: Optional[List[InstallApi]] = None
