"""
Filter and sort engine for template listings.

Templates are plain dicts as stored. Every configured query parameter that is
present narrows the result (AND across parameters); within one parameter the
comma-separated tokens are split into include (all required), exclude
(prefixed `!`) and or (prefixed `|`) sets. The bare values `*` and empty
string test only whether the field is set at all.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from shared.logging import get_logger
from .models import (
    FILTER_CONFIG, ORDER_BY_FIELDS, ORDER_BY_PARAM,
    FilterConfig, FilterKind, FilterTokens, FieldValue, ScalarValue, SequenceValue,
    SortDirection, SortKey, QueryResult
)


def split_values(raw: str) -> List[str]:
    """Split a comma-separated query value into trimmed tokens."""
    return [token.strip() for token in raw.split(",")]


def parse_tokens(raw: str) -> FilterTokens:
    """Split a filter value into include, exclude and or tokens."""
    include, exclude, either = [], [], []
    for token in split_values(raw):
        if token.startswith("!"):
            exclude.append(token[1:])
        elif token.startswith("|"):
            either.append(token[1:])
        else:
            include.append(token)
    return FilterTokens(tuple(include), tuple(exclude), tuple(either))


def _project(item: Any, subfield: Optional[str]) -> Any:
    if subfield is None:
        return item
    if isinstance(item, Mapping):
        return item.get(subfield)
    return None


def field_value(template: Mapping[str, Any], config: FilterConfig) -> FieldValue:
    """Read the filtered field of a template, projecting the subfield if configured."""
    value = template[config.field]
    if isinstance(value, (list, tuple)):
        return SequenceValue(tuple(_project(item, config.subfield) for item in value))
    return ScalarValue(_project(value, config.subfield))


def match_sequence(values: Sequence[Any], tokens: FilterTokens) -> bool:
    """Match a list field: exclude wins, then or, then every include token is required."""
    if any(value in tokens.exclude for value in values):
        return False
    if any(value in tokens.either for value in values):
        return True
    if not tokens.include:
        return not tokens.either
    return all(token in values for token in tokens.include)


def match_scalar(value: Any, tokens: FilterTokens) -> bool:
    """Match a single-valued field: exclude wins, then or, then any include token."""
    if value in tokens.exclude:
        return False
    if value in tokens.either:
        return True
    if not tokens.include:
        return not tokens.either
    return value in tokens.include


def match_boolean(template: Mapping[str, Any], config: FilterConfig, tokens: FilterTokens) -> bool:
    expected = "".join(tokens.include)
    if expected not in ("true", "false"):
        return False
    value = template[config.field]
    return isinstance(value, bool) and value == (expected == "true")


def matches(template: Mapping[str, Any], config: FilterConfig, tokens: FilterTokens) -> bool:
    """Decide whether a single template passes one filter."""
    present = config.field in template

    if tokens.is_presence_check:
        if "".join(tokens.include) == "*":
            return present
        return not present

    if not present:
        return False

    if config.kind is FilterKind.STUB:
        return False

    if config.kind is FilterKind.BOOLEAN:
        return match_boolean(template, config, tokens)

    value = field_value(template, config)
    if isinstance(value, SequenceValue):
        return match_sequence(value.values, tokens)
    return match_scalar(value.value, tokens)


def normalize_order_by(raw: str) -> str:
    """orderBy with redundant spaces removed from every entry."""
    return ",".join(" ".join(part for part in item.split(" ") if part) for item in raw.split(","))


def parse_order_by(raw: str) -> List[SortKey]:
    """Parse orderBy into sort keys.

    Unknown aliases and malformed entries are dropped.
    """
    keys = []
    for item in raw.split(","):
        parts = [part for part in item.split(" ") if part]
        if not parts or len(parts) > 2:
            continue
        field = ORDER_BY_FIELDS.get(parts[0])
        if field is None:
            continue
        if len(parts) == 2:
            try:
                direction = SortDirection(parts[1])
            except ValueError:
                continue
        else:
            direction = SortDirection.ASC
        keys.append(SortKey(field, direction))
    return keys


def _sort_value(value: Any) -> Tuple[str, Any]:
    # values of different types never compare with each other
    return type(value).__name__, value


def sort_templates(templates: Iterable[Dict[str, Any]], keys: Sequence[SortKey]) -> List[Dict[str, Any]]:
    """Stable multi-key sort, primary key first.

    Templates without the sort field go after the rest when ascending and
    before them when descending.
    """
    result = list(templates)
    for key in reversed(keys):
        with_value = [t for t in result if t.get(key.field) is not None]
        without_value = [t for t in result if t.get(key.field) is None]
        descending = key.direction is SortDirection.DESC
        with_value.sort(key=lambda t: _sort_value(t[key.field]), reverse=descending)
        result = without_value + with_value if descending else with_value + without_value
    return result


class TemplateQueryEngine:
    """Applies list query parameters to a template collection."""

    def __init__(self, filters: Sequence[FilterConfig] = FILTER_CONFIG):
        self.filters = tuple(filters)
        self.logger = get_logger("templates.query_engine")

    def filter(self, templates: Iterable[Dict[str, Any]],
               params: Mapping[str, str]) -> Tuple[List[Dict[str, Any]], List[Tuple[str, str]]]:
        """Filter templates, returning them with the applied parameters."""
        result = list(templates)
        applied = []
        for config in self.filters:
            raw = params.get(config.query_param)
            if raw is None:
                continue
            tokens = parse_tokens(raw)
            result = [t for t in result if matches(t, config, tokens)]
            applied.append((config.query_param, ",".join(split_values(raw))))
        return result, applied

    def sort(self, templates: Iterable[Dict[str, Any]],
             params: Mapping[str, str]) -> Tuple[List[Dict[str, Any]], List[Tuple[str, str]]]:
        """Sort templates by orderBy, returning them with the applied parameter."""
        raw = params.get(ORDER_BY_PARAM)
        if raw is None:
            return list(templates), []
        applied = [(ORDER_BY_PARAM, normalize_order_by(raw))]
        keys = parse_order_by(raw)
        if not keys:
            return list(templates), applied
        return sort_templates(templates, keys), applied

    def apply(self, templates: Iterable[Dict[str, Any]], params: Mapping[str, str],
              size: Optional[int] = None, page: int = 1) -> QueryResult:
        """Filter, sort and optionally page a template collection."""
        filtered, applied = self.filter(templates, params)
        ordered, order_applied = self.sort(filtered, params)
        applied.extend(order_applied)

        total = len(ordered)
        if size is None:
            self.logger.debug("Templates queried", total=total, params=applied)
            return QueryResult(items=ordered, applied_params=applied, total=total)

        start = (page - 1) * size
        items = ordered[start:start + size]
        has_more = start + size < total
        paging = [("size", str(size))]
        self_params = applied + paging + ([("page", str(page))] if page > 1 else [])
        next_params = applied + paging + [("page", str(page + 1))] if has_more else None

        self.logger.debug("Templates queried", total=total, size=size, page=page, params=applied)
        return QueryResult(
            items=items,
            applied_params=self_params,
            total=total,
            has_more=has_more,
            next_params=next_params
        )
