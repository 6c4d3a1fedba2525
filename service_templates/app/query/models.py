"""
Query models for template listing: filter table, sort keys and results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class FilterKind(str, Enum):
    """How a query parameter is matched against a template field."""
    ARRAY = "array"
    BOOLEAN = "boolean"
    # Structure not finalized, only presence/absence can be filtered
    STUB = "stub"


class SortDirection(str, Enum):
    """Sort directions accepted by orderBy."""
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class FilterConfig:
    """One supported list filter."""
    query_param: str
    field: str
    kind: FilterKind
    subfield: Optional[str] = None


FILTER_CONFIG: Tuple[FilterConfig, ...] = (
    FilterConfig("names", "name", FilterKind.ARRAY),
    FilterConfig("categories", "categories", FilterKind.ARRAY),
    FilterConfig("apis", "apis", FilterKind.ARRAY, subfield="code"),
    FilterConfig("statuses", "status", FilterKind.ARRAY),
    FilterConfig("adobeRecommended", "adobeRecommended", FilterKind.BOOLEAN),
    FilterConfig("extensions", "extensions", FilterKind.ARRAY, subfield="extensionPointId"),
    FilterConfig("events", "events", FilterKind.STUB),
    FilterConfig("runtime", "runtime", FilterKind.BOOLEAN),
)

# orderBy alias -> template field
ORDER_BY_FIELDS: Dict[str, str] = {
    "names": "name",
    "statuses": "status",
    "adobeRecommended": "adobeRecommended",
    "publishDate": "publishDate",
}

ORDER_BY_PARAM = "orderBy"


@dataclass(frozen=True)
class FilterTokens:
    """Tokens of one filter value split into include, exclude and or sets."""
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    either: Tuple[str, ...] = ()

    @property
    def is_presence_check(self) -> bool:
        """True for the bare `*` and empty values, which test field presence."""
        return not self.exclude and not self.either and "".join(self.include) in ("*", "")


@dataclass(frozen=True)
class ScalarValue:
    """A template field holding a single value."""
    value: Any


@dataclass(frozen=True)
class SequenceValue:
    """A template field holding a list of values."""
    values: Tuple[Any, ...]


FieldValue = Union[ScalarValue, SequenceValue]


@dataclass(frozen=True)
class SortKey:
    """A parsed orderBy entry."""
    field: str
    direction: SortDirection = SortDirection.ASC


@dataclass
class QueryResult:
    """Filtered and sorted templates plus the parameters that produced them."""
    items: List[Dict[str, Any]]
    applied_params: List[Tuple[str, str]] = field(default_factory=list)
    total: int = 0
    has_more: bool = False
    next_params: Optional[List[Tuple[str, str]]] = None

    @staticmethod
    def to_query_string(params: List[Tuple[str, str]]) -> str:
        """Render params as `?key=value&...`, or an empty string."""
        if not params:
            return ""
        return "?" + "&".join(f"{key}={value}" for key, value in params)

    @property
    def query_string(self) -> str:
        return self.to_query_string(self.applied_params)

    @property
    def next_query_string(self) -> Optional[str]:
        if self.next_params is None:
            return None
        return self.to_query_string(self.next_params)
