"""
Entitlement evaluation for templates.
"""

import copy
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shared.logging import get_logger
from shared.errors import InvalidInputError, ProviderError, MissingServicesError
from shared.metrics import MetricsCollector
from shared.tracing import get_tracer


@dataclass
class EntitlementSummary:
    """Entitlement of one template, folded over the services it requires."""
    user_entitled: bool = True
    org_entitled: bool = True
    can_request_access: bool = True
    dis_entitled_reasons: List[str] = field(default_factory=list)

    def add_service(self, service: Dict[str, Any]):
        self.user_entitled = self.user_entitled and bool(service.get("enabled"))
        self.org_entitled = self.org_entitled and bool(service.get("entitledForOrg"))
        self.can_request_access = self.can_request_access and bool(service.get("canRequestAccess"))
        for reason in service.get("disabledReasons") or []:
            if reason not in self.dis_entitled_reasons:
                self.dis_entitled_reasons.append(reason)

    def as_fields(self) -> Dict[str, Any]:
        return {
            "userEntitled": self.user_entitled,
            "orgEntitled": self.org_entitled,
            "canRequestAccess": self.can_request_access,
            "disEntitledReasons": list(self.dis_entitled_reasons),
        }


def required_sdk_codes(templates: List[Dict[str, Any]]) -> List[str]:
    """Every API code required by the templates, deduplicated in first-seen order."""
    codes = []
    for template in templates:
        for api in template.get("apis") or []:
            code = api.get("code")
            if code not in codes:
                codes.append(code)
    return codes


class EntitlementEvaluator:
    """Annotates templates with the caller's entitlements to their services.

    One batched services lookup is made per evaluation. The pending access
    request lookup is only made when some template lets the user request
    access and names the application to request it for. Failures of either
    lookup propagate.
    """

    def __init__(self, console_client, acrs_client, env: str = "stage",
                 metrics: Optional[MetricsCollector] = None):
        self.console_client = console_client
        self.acrs_client = acrs_client
        self.env = env
        self.metrics = metrics
        self.logger = get_logger("templates.entitlement_evaluator")
        self.tracer = get_tracer("templates.entitlement_evaluator")

    async def evaluate(self, templates: Optional[List[Dict[str, Any]]], org_id: Optional[str],
                       user_token: Optional[str], api_key: Optional[str] = None) -> Optional[List[Dict[str, Any]]]:
        """Evaluate entitlements, or return the templates untouched when no org is given."""
        if not org_id or not templates:
            self.logger.debug("No org id or templates specified. Skipping entitlement check.")
            return templates

        if not user_token:
            raise InvalidInputError("Invalid user token or templates")

        start_time = time.time()
        try:
            with self.tracer.start_as_current_span(
                "entitlements.evaluate",
                attributes={"org_id": org_id, "template_count": len(templates)}
            ):
                result = await self._evaluate(templates, org_id, user_token, api_key)
        except Exception:
            self._record("error", start_time)
            raise
        self._record("ok", start_time)
        return result

    async def _evaluate(self, templates: List[Dict[str, Any]], org_id: str,
                        user_token: str, api_key: Optional[str]) -> List[Dict[str, Any]]:
        self.logger.debug("Evaluating entitlements", template_count=len(templates), org_id=org_id)

        sdk_codes = required_sdk_codes(templates)
        services_by_code = {}
        if sdk_codes:
            services_by_code = await self._fetch_services(org_id, sdk_codes, user_token, api_key)

        evaluated = []
        check_pending_requests = False
        for template in templates:
            summary = EntitlementSummary()
            apis = []
            for api in template.get("apis") or []:
                api = dict(api)
                service = services_by_code[api.get("code")]
                summary.add_service(service)
                license_configs = (service.get("properties") or {}).get("licenseConfigs")
                if isinstance(license_configs, list):
                    api["licenseConfigs"] = copy.deepcopy(license_configs)
                apis.append(api)

            self.logger.debug(
                "Template entitlements evaluated",
                template_name=template.get("name"),
                org_id=org_id,
                **summary.as_fields()
            )

            if summary.can_request_access and template.get("requestAccessAppId"):
                check_pending_requests = True

            result = dict(template)
            if "apis" in template:
                result["apis"] = apis
            result.update(summary.as_fields())
            result["isRequestPending"] = False
            evaluated.append(result)

        if not check_pending_requests:
            return evaluated

        pending_app_ids = await self.acrs_client.fetch_app_ids_with_pending_requests(
            user_token, org_id, self.env, api_key
        )
        for result in evaluated:
            if result["canRequestAccess"] and result.get("requestAccessAppId"):
                result["isRequestPending"] = result["requestAccessAppId"] in pending_app_ids
        return evaluated

    async def _fetch_services(self, org_id: str, sdk_codes: List[str], user_token: str,
                              api_key: Optional[str]) -> Dict[str, Dict[str, Any]]:
        joined_codes = ",".join(str(code) for code in sdk_codes)
        self.logger.debug("Retrieving services for org", org_id=org_id, sdk_codes=joined_codes)

        body = await self.console_client.get_services_for_org(org_id, joined_codes, user_token, api_key)
        services = body.get("services") if isinstance(body, dict) else None
        if not isinstance(services, list) or not services:
            raise ProviderError(
                "Failed to retrieve services for the organization. Received: " + json.dumps(body)
            )

        services_by_code = {service.get("code"): service for service in services}
        missing = [code for code in sdk_codes if code not in services_by_code]
        if missing:
            raise MissingServicesError(
                f"Not all services were found for the org. Found: {len(services)}, "
                f"Expected: {len(sdk_codes)} Missing: {','.join(str(code) for code in missing)}",
                missing=missing
            )

        self.logger.debug("Retrieved services for org", org_id=org_id, service_count=len(services))
        return services_by_code

    def _record(self, outcome: str, start_time: float):
        if self.metrics is None:
            return
        self.metrics.increment_counter("entitlement_evaluations_total", outcome=outcome)
        self.metrics.observe_histogram("entitlement_evaluation_duration_seconds", time.time() - start_time)
