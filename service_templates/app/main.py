"""
Template Registry service.
"""

import uuid
from typing import Dict, Any, Optional

from fastapi import Query, Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.errors import (
    AuthorizationError, ConflictError, MissingHeaderError, MissingParameterError, NotFoundError
)
from shared.logging import set_user_context, redact_params

from .adapters import IMSClient, ConsoleClient, ACRSClient, GitHubClient, ReviewIssueLookup
from .adapters.ims_client import get_token_data, is_valid_service_token
from .adapters.console_client import install_config_to_template_fields, project_id_from_url
from .entitlements.evaluator import EntitlementEvaluator
from .install import TemplateInstaller
from .models import (
    REVIEWABLE_STATUSES, TemplateCreateRequest, TemplateUpdateRequest, TemplateInstallRequest
)
from .persistence.postgres import TemplateStore
from .query.engine import TemplateQueryEngine

READ_SCOPE = "template_registry.read"
WRITE_SCOPE = "template_registry.write"
REVIEW_LINK_DESCRIPTION = 'A link to the "Template Review Request" Github issue.'
ADMIN_ONLY_MESSAGE = (
    "This operation is available to admins only. To request template removal from Template Registry, "
    'please, create a "Template Removal Request" issue on https://github.com/adobe/aio-template-submission'
)


def bearer_token(request: Request) -> Optional[str]:
    """Token from the Authorization header, without the Bearer prefix."""
    header = request.headers.get("authorization")
    if not header:
        return None
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return header.strip()


def is_console_template(template: Dict[str, Any]) -> bool:
    """Templates backed by a console project rather than an npm package."""
    return bool((template.get("links") or {}).get("consoleProject"))


def parse_template_id(value: str) -> Optional[str]:
    """Normalized id if the value is a UUID, otherwise None."""
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


class TemplateRegistryService(BaseService):
    """Template Registry service implementation."""

    def __init__(self):
        super().__init__("templates", 8020)

        timeout = self.config.http_timeout_seconds
        self.ims_client = IMSClient(
            self.config.ims_url,
            self.config.ims_client_id,
            client_secret=self.config.ims_client_secret,
            scopes=self.config.ims_scopes,
            timeout=timeout
        )
        self.console_client = ConsoleClient(self.config.console_api_url, self.config.ims_client_id, timeout=timeout)
        self.acrs_client = ACRSClient(timeout=timeout)
        self.github_client = GitHubClient(
            self.config.github_api_url,
            self.config.template_registry_org,
            self.config.template_registry_repository,
            access_token=self.config.github_access_token,
            timeout=timeout
        )
        self.store = TemplateStore(self.config.postgres_dsn)
        self.query_engine = TemplateQueryEngine()
        self.evaluator = EntitlementEvaluator(
            self.console_client,
            self.acrs_client,
            env=self.config.console_env,
            metrics=self.metrics
        )
        self.installer = TemplateInstaller(self.console_client)

        self._setup_template_routes()

    def _bind_request_context(self, request: Request):
        token = bearer_token(request)
        user_id = get_token_data(token).get("user_id") if token else None
        set_user_context(user_id=user_id, org_id=request.headers.get("x-org-id"))

    async def _authenticate(self, request: Request) -> str:
        """Validated bearer token of the caller."""
        token = bearer_token(request)
        if not token:
            raise MissingHeaderError("authorization")
        await self.ims_client.validate_token(token)
        return token

    def _template_href(self, path: str) -> str:
        return f"{self.config.api_url.rstrip('/')}/templates/{path}"

    async def _with_links(self, template: Dict[str, Any], self_path: str,
                          reviews: ReviewIssueLookup) -> Dict[str, Any]:
        """Template with its self link and, while under review, its review issue link."""
        links = {"self": {"href": self._template_href(self_path)}}
        if template.get("status") in REVIEWABLE_STATUSES:
            review_url = await reviews.review_url_for(template["name"])
            if review_url is not None:
                links["review"] = {"href": review_url, "description": REVIEW_LINK_DESCRIPTION}
        return {**template, "_links": links}

    async def _console_project_fields(self, links: Dict[str, Any]) -> Dict[str, Any]:
        """Credentials and APIs of the console project a template links to."""
        project_id = project_id_from_url(links["consoleProject"])
        service_token = await self.ims_client.generate_access_token()
        install_config = await self.console_client.get_project_install_config(project_id, service_token)
        return install_config_to_template_fields(install_config)

    async def _find_template(self, template_ref: str) -> Optional[Dict[str, Any]]:
        template_id = parse_template_id(template_ref)
        if template_id is not None:
            return await self.store.find_template_by_id(template_id)
        return await self.store.find_template_by_name(template_ref)

    async def _get_template(self, request: Request, template_ref: str, by_name: bool):
        if by_name:
            template = await self.store.find_template_by_name(template_ref)
        else:
            template = await self._find_template(template_ref)
        if template is None:
            raise NotFoundError(f"Template {template_ref} not found.", details={"template": template_ref})

        looked_up_by_id = not by_name and parse_template_id(template_ref) is not None
        self_path = template["id"] if looked_up_by_id else template_ref
        response = await self._with_links(template, self_path, ReviewIssueLookup(self.github_client))

        evaluated = await self.evaluator.evaluate(
            [response],
            request.headers.get("x-org-id"),
            bearer_token(request),
            request.headers.get("x-api-key")
        )
        return evaluated[0]

    async def _delete_template(self, request: Request, template_ref: str, by_name: bool):
        token = await self._authenticate(request)

        is_admin = await self.ims_client.is_admin(token, self.config.admin_organizations())
        if not is_admin and not is_valid_service_token(token, [WRITE_SCOPE]):
            raise AuthorizationError(ADMIN_ONLY_MESSAGE)

        template_id = None if by_name else parse_template_id(template_ref)
        if template_id is not None:
            deleted = await self.store.remove_template_by_id(template_id)
        else:
            deleted = await self.store.remove_template_by_name(template_ref)

        if not deleted:
            raise NotFoundError(f"Template {template_ref} not found.", details={"template": template_ref})

        self.metrics.record_business_event("template_deleted")
        self.logger.info("Template deleted", template=template_ref)
        return JSONResponse(status_code=200, content={})

    def _setup_template_routes(self):
        """Set up template registry routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "templates",
                "message": "Template Registry Service",
                "version": "1.0.0",
                "capabilities": ["list", "entitlements", "install"]
            }

        @self.app.get("/templates")
        async def list_templates(
            request: Request,
            names: Optional[str] = Query(None, min_length=1, description="Template names"),
            categories: Optional[str] = Query(None, description="Categories"),
            apis: Optional[str] = Query(None, description="Required API codes"),
            statuses: Optional[str] = Query(None, min_length=1, description="Review statuses"),
            adobeRecommended: Optional[str] = Query(None, pattern=r"^(true|false|\*)?$"),
            extensions: Optional[str] = Query(None, description="Extension point ids"),
            events: Optional[str] = Query(None, description="Events"),
            runtime: Optional[str] = Query(None, pattern=r"^(true|false|\*)?$"),
            orderBy: Optional[str] = Query(None, min_length=1, description="Sort order, e.g. names desc"),
            size: Optional[int] = Query(None, ge=1, description="Page size"),
            page: int = Query(1, ge=1, description="Page number")
        ):
            """List templates with optional filtering and sorting."""
            params = {
                key: value for key, value in {
                    "names": names,
                    "categories": categories,
                    "apis": apis,
                    "statuses": statuses,
                    "adobeRecommended": adobeRecommended,
                    "extensions": extensions,
                    "events": events,
                    "runtime": runtime,
                    "orderBy": orderBy,
                }.items() if value is not None
            }
            self.logger.debug("Listing templates", params=redact_params(params))

            include_console = False
            token = bearer_token(request)
            if token:
                await self.ims_client.validate_token(token)
                include_console = is_valid_service_token(token, [READ_SCOPE])

            templates = await self.store.get_templates()
            if not include_console:
                templates = [t for t in templates if not is_console_template(t)]

            result = self.query_engine.apply(templates, params, size=size, page=page)

            reviews = ReviewIssueLookup(self.github_client)
            items = [await self._with_links(t, t["name"], reviews) for t in result.items]
            self.metrics.increment_counter("templates_listed_total", len(items))

            links = {"self": {"href": f"{self.config.api_url.rstrip('/')}/templates{result.query_string}"}}
            if result.has_more:
                links["next"] = {"href": f"{self.config.api_url.rstrip('/')}/templates{result.next_query_string}"}

            return {"items": items, "_links": links}

        @self.app.get("/templates/{template_ref}")
        async def get_template(request: Request, template_ref: str):
            """Get a template by id or by name."""
            return await self._get_template(request, template_ref, by_name=False)

        @self.app.get("/templates/{org_name}/{template_name}")
        async def get_scoped_template(request: Request, org_name: str, template_name: str):
            """Get a template by its org-scoped name."""
            return await self._get_template(request, f"{org_name}/{template_name}", by_name=True)

        @self.app.post("/templates")
        async def create_template(request: Request, body: TemplateCreateRequest):
            """Register a new template."""
            if not bearer_token(request):
                raise MissingHeaderError("authorization")
            if not body.name:
                raise MissingParameterError("name")
            await self._authenticate(request)

            if await self.store.find_template_by_name(body.name) is not None:
                raise ConflictError(
                    f"Template with name {body.name} already exists.",
                    details={"name": body.name}
                )

            document = body.to_document()
            links = document.get("links") or {}
            if "apis" not in document and "credentials" not in document and links.get("consoleProject"):
                document.update(await self._console_project_fields(links))

            template = await self.store.add_template(document)
            self.metrics.record_business_event("template_created")

            self_path = template["name"] if "/" in template["name"] else template["id"]
            response = await self._with_links(template, self_path, ReviewIssueLookup(self.github_client))

            if links.get("github") and not is_console_template(template) and self.github_client.can_create_issues:
                issue_number = await self.github_client.create_review_issue(template["name"], links["github"])
                response["_links"]["review"] = {
                    "href": self.github_client.review_url(issue_number),
                    "description": REVIEW_LINK_DESCRIPTION
                }

            self.logger.info("Template created", template_id=template["id"], name=template["name"])
            return response

        @self.app.put("/templates/{template_id}")
        async def update_template(request: Request, template_id: str, body: TemplateUpdateRequest):
            """Partially update a template."""
            await self._authenticate(request)

            changes = body.to_document()
            links = changes.get("links") or {}
            if "apis" not in changes and "credentials" not in changes and links.get("consoleProject"):
                changes.update(await self._console_project_fields(links))

            matched = await self.store.update_template(template_id, changes)
            if matched < 1:
                raise NotFoundError(f"Template with id {template_id} not found.", details={"template_id": template_id})

            template = await self.store.find_template_by_id(template_id)
            if template is None:
                raise NotFoundError(f"Template with id {template_id} not found.", details={"template_id": template_id})

            self.metrics.record_business_event("template_updated")
            self.logger.info("Template updated", template_id=template_id)
            return {**template, "_links": {"self": {"href": self._template_href(template_id)}}}

        @self.app.delete("/templates/{template_ref}")
        async def delete_template(request: Request, template_ref: str):
            """Delete a template by id or by name."""
            return await self._delete_template(request, template_ref, by_name=False)

        @self.app.delete("/templates/{org_name}/{template_name}")
        async def delete_scoped_template(request: Request, org_name: str, template_name: str):
            """Delete a template by its org-scoped name."""
            return await self._delete_template(request, f"{org_name}/{template_name}", by_name=True)

        @self.app.post("/templates/{template_id}/install", status_code=201)
        async def install_template(request: Request, template_id: str, body: TemplateInstallRequest):
            """Create a Developer Console project from a template."""
            token = await self._authenticate(request)

            template = await self.store.find_template_by_id(template_id)
            if template is None:
                raise NotFoundError(f"Template with id {template_id} not found.", details={"template_id": template_id})

            workspace = await self.installer.install(template, template_id, body, token)
            self.metrics.record_business_event("template_installed")
            return workspace

    async def start(self):
        """Start the service."""
        await self.store.start()
        self.logger.info("Template Registry service started")

    async def stop(self):
        """Stop the service."""
        await self.store.stop()
        self.logger.info("Template Registry service stopped")

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies."""
        dependencies = {
            "postgres": "ok" if await self.store.health_check() else "error",
        }
        return dependencies


def create_app():
    """Create the Template Registry service application."""
    service = TemplateRegistryService()
    return service.app


if __name__ == "__main__":
    service = TemplateRegistryService()
    service.run()
