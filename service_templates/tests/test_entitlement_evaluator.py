"""
Unit tests for the entitlement evaluator.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from service_templates.app.entitlements.evaluator import EntitlementEvaluator, required_sdk_codes
from shared.errors import InvalidInputError, ProviderError, MissingServicesError, PendingRequestsError
from shared.metrics import MetricsCollector


def service(code, enabled=True, entitled_for_org=True, can_request_access=True,
            disabled_reasons=None, license_configs=None):
    result = {
        "code": code,
        "enabled": enabled,
        "entitledForOrg": entitled_for_org,
        "canRequestAccess": can_request_access,
        "disabledReasons": disabled_reasons or [],
    }
    if license_configs is not None:
        result["properties"] = {"licenseConfigs": license_configs}
    return result


class TestEntitlementEvaluator:
    """Test cases for EntitlementEvaluator."""

    @pytest.fixture
    def console_client(self):
        client = MagicMock()
        client.get_services_for_org = AsyncMock()
        return client

    @pytest.fixture
    def acrs_client(self):
        client = MagicMock()
        client.fetch_app_ids_with_pending_requests = AsyncMock(return_value=set())
        return client

    @pytest.fixture
    def evaluator(self, console_client, acrs_client):
        return EntitlementEvaluator(console_client, acrs_client, env="stage")

    @pytest.fixture
    def entitlement_templates(self):
        return [
            {
                "id": "template-1",
                "name": "template1",
                "apis": [{"code": "sdkCode1"}, {"code": "sdkCode2"}],
            },
            {
                "id": "template-2",
                "name": "template2",
                "apis": [{"code": "sdkCode3"}, {"code": "sdkCode4"}],
            },
            {
                "id": "template-3",
                "name": "template3",
                "requestAccessAppId": "appId1",
                "apis": [{"code": "sdkCode5"}],
            },
        ]

    @pytest.fixture
    def org_services(self):
        return {
            "services": [
                service("sdkCode1", license_configs=[{"id": "lc1", "productId": "p1"}]),
                service("sdkCode2"),
                service("sdkCode3", enabled=False, can_request_access=False,
                        disabled_reasons=["USER_MISSING_PRODUCT_PROFILES"]),
                service("sdkCode4", entitled_for_org=False, can_request_access=False,
                        disabled_reasons=["ORG_MISSING_FIS", "USER_MISSING_PRODUCT_PROFILES"]),
                service("sdkCode5", enabled=False, disabled_reasons=["USER_MISSING_PRODUCT_PROFILES"]),
            ]
        }

    @pytest.mark.asyncio
    async def test_skips_without_org_id(self, evaluator, console_client, entitlement_templates):
        """Test templates are returned as is when no org id is given."""
        result = await evaluator.evaluate(entitlement_templates, None, "token")

        assert result is entitlement_templates
        console_client.get_services_for_org.assert_not_called()

    @pytest.mark.asyncio
    async def test_skips_without_templates(self, evaluator, console_client):
        """Test an empty template list is returned as is."""
        assert await evaluator.evaluate([], "org-1", "token") == []
        assert await evaluator.evaluate(None, "org-1", "token") is None
        console_client.get_services_for_org.assert_not_called()

    @pytest.mark.asyncio
    async def test_requires_token_with_org_id(self, evaluator, entitlement_templates):
        """Test a missing user token fails when an org id is given."""
        with pytest.raises(InvalidInputError) as exc_info:
            await evaluator.evaluate(entitlement_templates, "org-1", None)

        assert exc_info.value.message == "Invalid user token or templates"

    @pytest.mark.asyncio
    async def test_evaluates_entitlements(self, evaluator, console_client, acrs_client,
                                          entitlement_templates, org_services):
        """Test entitlement fields are folded over every required service."""
        console_client.get_services_for_org.return_value = org_services
        acrs_client.fetch_app_ids_with_pending_requests.return_value = {"appId1"}

        result = await evaluator.evaluate(entitlement_templates, "org-1", "user-token", "api-key")

        console_client.get_services_for_org.assert_awaited_once_with(
            "org-1", "sdkCode1,sdkCode2,sdkCode3,sdkCode4,sdkCode5", "user-token", "api-key"
        )
        assert [t["name"] for t in result] == ["template1", "template2", "template3"]

        first, second, third = result
        assert first["userEntitled"] is True
        assert first["orgEntitled"] is True
        assert first["canRequestAccess"] is True
        assert first["disEntitledReasons"] == []
        assert first["isRequestPending"] is False
        assert first["apis"][0]["licenseConfigs"] == [{"id": "lc1", "productId": "p1"}]
        assert "licenseConfigs" not in first["apis"][1]

        assert second["userEntitled"] is False
        assert second["orgEntitled"] is False
        assert second["canRequestAccess"] is False
        assert second["disEntitledReasons"] == ["USER_MISSING_PRODUCT_PROFILES", "ORG_MISSING_FIS"]
        assert second["isRequestPending"] is False

        assert third["userEntitled"] is False
        assert third["canRequestAccess"] is True
        assert third["isRequestPending"] is True

        acrs_client.fetch_app_ids_with_pending_requests.assert_awaited_once_with(
            "user-token", "org-1", "stage", "api-key"
        )

    @pytest.mark.asyncio
    async def test_user_entitled_is_and_across_codes(self, evaluator, console_client):
        """Test one disabled service makes the template not user-entitled."""
        console_client.get_services_for_org.return_value = {
            "services": [service("A"), service("B", enabled=False)]
        }

        result = await evaluator.evaluate([{"name": "t", "apis": [{"code": "A"}, {"code": "B"}]}], "org", "token")

        assert result[0]["userEntitled"] is False
        assert result[0]["orgEntitled"] is True

    @pytest.mark.asyncio
    async def test_templates_without_apis_are_entitled(self, evaluator, console_client):
        """Test templates requiring no services skip the services lookup."""
        result = await evaluator.evaluate([{"name": "t"}], "org", "token")

        assert result[0]["userEntitled"] is True
        assert result[0]["orgEntitled"] is True
        assert result[0]["disEntitledReasons"] == []
        console_client.get_services_for_org.assert_not_called()

    @pytest.mark.asyncio
    async def test_pending_request_not_in_set(self, evaluator, console_client, acrs_client):
        """Test isRequestPending is false when the app has no pending request."""
        console_client.get_services_for_org.return_value = {"services": [service("A")]}
        acrs_client.fetch_app_ids_with_pending_requests.return_value = {"other-app"}

        result = await evaluator.evaluate(
            [{"name": "t", "requestAccessAppId": "X", "apis": [{"code": "A"}]}], "org", "token"
        )

        assert result[0]["isRequestPending"] is False
        acrs_client.fetch_app_ids_with_pending_requests.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pending_lookup_skipped_when_not_needed(self, evaluator, console_client, acrs_client):
        """Test no pending request lookup without a requestable template."""
        console_client.get_services_for_org.return_value = {
            "services": [service("A", can_request_access=False)]
        }

        result = await evaluator.evaluate(
            [
                {"name": "no-app-id", "apis": [{"code": "A"}]},
                {"name": "cannot-request", "requestAccessAppId": "X", "apis": [{"code": "A"}]},
            ],
            "org", "token"
        )

        assert [t["isRequestPending"] for t in result] == [False, False]
        acrs_client.fetch_app_ids_with_pending_requests.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_services(self, evaluator, console_client):
        """Test codes the provider did not return are named in the error."""
        console_client.get_services_for_org.return_value = {"services": [service("A"), service("B")]}

        with pytest.raises(MissingServicesError) as exc_info:
            await evaluator.evaluate([{"name": "t", "apis": [{"code": "A"}, {"code": "B"}, {"code": "C"}]}],
                                     "org", "token")

        assert exc_info.value.message == (
            "Not all services were found for the org. Found: 2, Expected: 3 Missing: C"
        )
        assert exc_info.value.details == {"missing": ["C"]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"services": []}, {"services": None}, {}, None])
    async def test_unusable_provider_response(self, evaluator, console_client, body):
        """Test an empty or malformed services response fails with the body."""
        console_client.get_services_for_org.return_value = body

        with pytest.raises(ProviderError) as exc_info:
            await evaluator.evaluate([{"name": "t", "apis": [{"code": "A"}]}], "org", "token")

        assert exc_info.value.message.startswith(
            "Failed to retrieve services for the organization. Received: "
        )

    @pytest.mark.asyncio
    async def test_pending_lookup_errors_propagate(self, evaluator, console_client, acrs_client):
        """Test a failing pending request lookup fails the evaluation."""
        console_client.get_services_for_org.return_value = {"services": [service("A")]}
        acrs_client.fetch_app_ids_with_pending_requests.side_effect = PendingRequestsError(
            "Failed to fetch pending requests from ACRS for org org."
        )

        with pytest.raises(PendingRequestsError):
            await evaluator.evaluate([{"name": "t", "requestAccessAppId": "X", "apis": [{"code": "A"}]}],
                                     "org", "token")

    @pytest.mark.asyncio
    async def test_input_not_mutated(self, evaluator, console_client, entitlement_templates, org_services):
        """Test the input templates keep their original fields."""
        console_client.get_services_for_org.return_value = org_services

        await evaluator.evaluate(entitlement_templates, "org-1", "token")

        assert "userEntitled" not in entitlement_templates[0]
        assert "licenseConfigs" not in entitlement_templates[0]["apis"][0]

    @pytest.mark.asyncio
    async def test_records_metrics(self, console_client, acrs_client):
        """Test evaluations are counted by outcome."""
        metrics = MetricsCollector("templates")
        evaluator = EntitlementEvaluator(console_client, acrs_client, metrics=metrics)
        console_client.get_services_for_org.return_value = {"services": [service("A")]}

        await evaluator.evaluate([{"name": "t", "apis": [{"code": "A"}]}], "org", "token")

        value = metrics.registry.get_sample_value("entitlement_evaluations_total", {"outcome": "ok"})
        assert value == 1.0

    def test_required_sdk_codes_first_seen_order(self):
        """Test codes are deduplicated in first-seen order."""
        codes = required_sdk_codes([
            {"apis": [{"code": "B"}, {"code": "A"}]},
            {"apis": [{"code": "A"}, {"code": "C"}]},
            {"name": "no-apis"},
        ])
        assert codes == ["B", "A", "C"]
