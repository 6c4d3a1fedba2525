"""
Adapters package for the Template Registry Service.

Contains HTTP client wrappers for external dependencies (IMS, Developer
Console, ACRS, GitHub). These adapters encapsulate:

- Base URLs and request shapes
- Retry policies and circuit breakers
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .ims_client import IMSClient
from .console_client import ConsoleClient
from .acrs_client import ACRSClient
from .github_client import GitHubClient, ReviewIssueLookup

__all__ = [
    "IMSClient",
    "ConsoleClient",
    "ACRSClient",
    "GitHubClient",
    "ReviewIssueLookup",
]
