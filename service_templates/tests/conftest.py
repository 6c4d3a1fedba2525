"""
Shared fixtures for Template Registry tests.
"""

import pytest

from shared.circuit_breaker import circuit_breaker_manager


@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """Start every test with closed circuit breakers."""
    circuit_breaker_manager.reset()
    yield
    circuit_breaker_manager.reset()


@pytest.fixture
def templates():
    """A small registry covering every filterable field."""
    return [
        {
            "id": "d1dc1a8b-1e0a-4a8f-9a6e-0d4b5a1d2c01",
            "name": "@adobe/generator-app-excshell",
            "status": "Approved",
            "adobeRecommended": True,
            "publishDate": "2022-05-01T10:00:00.000Z",
            "categories": ["action", "ui"],
            "apis": [{"code": "AdobeIO"}],
            "extensions": [{"extensionPointId": "dx/excshell/1"}],
            "runtime": True,
            "links": {"github": "https://github.com/adobe/generator-app-excshell"},
        },
        {
            "id": "d1dc1a8b-1e0a-4a8f-9a6e-0d4b5a1d2c02",
            "name": "@adobe/generator-app-asset-compute",
            "status": "InVerification",
            "adobeRecommended": False,
            "publishDate": "2022-06-11T04:00:00.000Z",
            "categories": ["action"],
            "apis": [{"code": "AssetComputeSDK"}, {"code": "AdobeIO"}],
            "extensions": [{"extensionPointId": "dx/asset-compute/worker/1"}],
            "links": {"github": "https://github.com/adobe/generator-app-asset-compute"},
        },
        {
            "id": "d1dc1a8b-1e0a-4a8f-9a6e-0d4b5a1d2c03",
            "name": "@adobe/generator-app-api-mesh",
            "status": "Rejected",
            "adobeRecommended": False,
            "categories": ["ui", "graphql"],
            "apis": [{"code": "GraphQLServiceSDK"}],
            "runtime": False,
            "events": [{"code": "com.adobe.event"}],
            "links": {"github": "https://github.com/adobe/generator-app-api-mesh"},
        },
    ]
