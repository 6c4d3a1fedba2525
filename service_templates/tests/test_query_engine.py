"""
Unit tests for the template query engine.
"""

import pytest

from service_templates.app.query.engine import (
    TemplateQueryEngine, parse_tokens, parse_order_by, normalize_order_by, sort_templates, matches
)
from service_templates.app.query.models import (
    FILTER_CONFIG, FilterConfig, FilterKind, SortDirection, SortKey
)


def names_of(items):
    return [item["name"] for item in items]


class TestTokenParsing:
    """Test cases for filter value tokenizing."""

    def test_parse_tokens_splits_prefixes(self):
        """Test include, exclude and or tokens are separated."""
        tokens = parse_tokens(" ui , !cli ,|graphql,action")

        assert tokens.include == ("ui", "action")
        assert tokens.exclude == ("cli",)
        assert tokens.either == ("graphql",)

    def test_presence_check_only_without_prefixed_tokens(self):
        """Test `*` and empty are presence checks only on their own."""
        assert parse_tokens("*").is_presence_check
        assert parse_tokens("").is_presence_check
        assert not parse_tokens("*,!ui").is_presence_check
        assert not parse_tokens("ui").is_presence_check

    def test_parse_order_by_drops_unknown_and_malformed(self):
        """Test orderBy parsing keeps only known aliases with valid directions."""
        parsed = parse_order_by("names  desc,unknown,statuses sideways,publishDate,adobeRecommended asc extra")

        assert parsed == [
            SortKey("name", SortDirection.DESC),
            SortKey("publishDate", SortDirection.ASC),
        ]

    def test_normalize_order_by_keeps_every_entry(self):
        """Test orderBy normalization only removes redundant spaces."""
        assert normalize_order_by("names  desc, bogus ,publishDate") == "names desc,bogus,publishDate"


class TestArrayFilters:
    """Test cases for array-kind filters."""

    @pytest.fixture
    def engine(self):
        return TemplateQueryEngine()

    @pytest.fixture
    def records(self):
        return [
            {"name": "x", "categories": ["ui"]},
            {"name": "y", "categories": ["ui", "cli"]},
        ]

    def test_include_tokens_are_all_required(self, engine, records):
        """Test `categories=ui,cli` keeps only records having both."""
        items, _ = engine.filter(records, {"categories": "ui,cli"})
        assert names_of(items) == ["y"]

    def test_empty_include_token_is_required(self, engine, records):
        """Test a trailing comma adds an empty token no record has."""
        items, _ = engine.filter(records, {"categories": "ui,"})
        assert items == []

    def test_or_token_matches_any(self, engine, records):
        """Test `categories=|cli` keeps records having cli."""
        items, _ = engine.filter(records, {"categories": "|cli"})
        assert names_of(items) == ["y"]

    def test_exclude_token_rejects(self, engine, records):
        """Test `categories=!ui` rejects every record having ui."""
        items, _ = engine.filter(records, {"categories": "!ui"})
        assert items == []

    def test_or_token_passes_despite_failed_include(self, engine, records):
        """Test an or match passes even when the include set is not satisfied."""
        items, _ = engine.filter(records, {"categories": "graphql,|ui"})
        assert names_of(items) == ["x", "y"]

    def test_exclude_wins_over_or(self, engine, records):
        """Test an excluded value rejects the record even if an or token matches."""
        items, _ = engine.filter(records, {"categories": "|ui,!cli"})
        assert names_of(items) == ["x"]

    def test_subfield_projection(self, engine, templates):
        """Test apis are matched on their code."""
        items, _ = engine.filter(templates, {"apis": "AdobeIO"})
        assert names_of(items) == ["@adobe/generator-app-excshell", "@adobe/generator-app-asset-compute"]

        items, _ = engine.filter(templates, {"apis": "AssetComputeSDK,AdobeIO"})
        assert names_of(items) == ["@adobe/generator-app-asset-compute"]

    def test_extensions_subfield(self, engine, templates):
        """Test extensions are matched on their extension point id."""
        items, _ = engine.filter(templates, {"extensions": "dx/excshell/1"})
        assert names_of(items) == ["@adobe/generator-app-excshell"]

    def test_absent_field_fails(self, engine, templates):
        """Test a record without the field never matches a value filter."""
        items, _ = engine.filter(templates, {"extensions": "!dx/excshell/1"})
        assert names_of(items) == ["@adobe/generator-app-asset-compute"]


class TestScalarFilters:
    """Test cases for filters on single-valued fields."""

    @pytest.fixture
    def engine(self):
        return TemplateQueryEngine()

    def test_names_any_of(self, engine, templates):
        """Test names match any of the listed names."""
        items, _ = engine.filter(
            templates, {"names": "@adobe/generator-app-api-mesh,@adobe/generator-app-excshell"}
        )
        assert names_of(items) == ["@adobe/generator-app-excshell", "@adobe/generator-app-api-mesh"]

    def test_statuses_exclude(self, engine, templates):
        """Test excluded statuses are rejected."""
        items, _ = engine.filter(templates, {"statuses": "!Approved"})
        assert names_of(items) == ["@adobe/generator-app-asset-compute", "@adobe/generator-app-api-mesh"]

    def test_scalar_or_token_matches_like_sequences(self, engine, templates):
        """Test an or token on a scalar field keeps only matching records."""
        items, _ = engine.filter(templates, {"statuses": "|Rejected"})
        assert names_of(items) == ["@adobe/generator-app-api-mesh"]

    def test_scalar_empty_include_token_adds_no_match(self, engine, templates):
        """Test an empty token on a scalar field adds no match."""
        items, _ = engine.filter(templates, {"statuses": "Approved,"})
        assert names_of(items) == ["@adobe/generator-app-excshell"]

    def test_scalar_or_combined_with_include(self, engine, templates):
        """Test or and include tokens on a scalar field both admit records."""
        items, _ = engine.filter(templates, {"statuses": "Approved,|Rejected"})
        assert names_of(items) == ["@adobe/generator-app-excshell", "@adobe/generator-app-api-mesh"]


class TestPresenceAndBooleanFilters:
    """Test cases for presence, boolean and stub filters."""

    @pytest.fixture
    def engine(self):
        return TemplateQueryEngine()

    def test_star_requires_field(self, engine, templates):
        """Test `*` keeps records that have the field."""
        items, _ = engine.filter(templates, {"extensions": "*"})
        assert names_of(items) == ["@adobe/generator-app-excshell", "@adobe/generator-app-asset-compute"]

    def test_empty_requires_absence(self, engine, templates):
        """Test an empty value keeps records without the field."""
        items, _ = engine.filter(templates, {"extensions": ""})
        assert names_of(items) == ["@adobe/generator-app-api-mesh"]

    def test_presence_check_on_falsy_value(self, engine):
        """Test presence is key presence, not truthiness."""
        records = [{"name": "a", "runtime": False}, {"name": "b"}]

        items, _ = engine.filter(records, {"runtime": "*"})
        assert names_of(items) == ["a"]

        items, _ = engine.filter(records, {"runtime": ""})
        assert names_of(items) == ["b"]

    def test_stub_supports_only_presence(self, engine, templates):
        """Test events match presence checks and nothing else."""
        items, _ = engine.filter(templates, {"events": "*"})
        assert names_of(items) == ["@adobe/generator-app-api-mesh"]

        items, _ = engine.filter(templates, {"events": "com.adobe.event"})
        assert items == []

    def test_boolean_true(self, engine, templates):
        """Test adobeRecommended=true."""
        items, _ = engine.filter(templates, {"adobeRecommended": "true"})
        assert names_of(items) == ["@adobe/generator-app-excshell"]

    def test_boolean_false_requires_field(self, engine, templates):
        """Test runtime=false skips records without runtime."""
        items, _ = engine.filter(templates, {"runtime": "false"})
        assert names_of(items) == ["@adobe/generator-app-api-mesh"]

    def test_boolean_rejects_other_values(self):
        """Test a non-boolean value never matches."""
        config = FilterConfig("flag", "flag", FilterKind.BOOLEAN)
        assert not matches({"flag": True}, config, parse_tokens("yes"))


class TestSorting:
    """Test cases for orderBy sorting."""

    @pytest.fixture
    def engine(self):
        return TemplateQueryEngine()

    def test_names_desc(self, engine):
        """Test `orderBy=names desc`."""
        records = [{"name": "a"}, {"name": "c"}, {"name": "b"}]
        items, _ = engine.sort(records, {"orderBy": "names desc"})
        assert names_of(items) == ["c", "b", "a"]

    def test_multi_key(self, engine, templates):
        """Test a secondary key orders ties of the primary key."""
        items, _ = engine.sort(templates, {"orderBy": "adobeRecommended desc,names"})
        assert names_of(items) == [
            "@adobe/generator-app-excshell",
            "@adobe/generator-app-api-mesh",
            "@adobe/generator-app-asset-compute",
        ]

    def test_sort_is_stable(self):
        """Test equal keys keep their input order."""
        records = [
            {"name": "first", "status": "Approved"},
            {"name": "second", "status": "Approved"},
            {"name": "third", "status": "Approved"},
        ]
        ascending = sort_templates(records, [SortKey("status")])
        descending = sort_templates(records, [SortKey("status", SortDirection.DESC)])

        assert names_of(ascending) == ["first", "second", "third"]
        assert names_of(descending) == ["first", "second", "third"]

    def test_missing_sort_field_placement(self, engine, templates):
        """Test records without the sort field go last ascending and first descending."""
        items, _ = engine.sort(templates, {"orderBy": "publishDate"})
        assert names_of(items)[-1] == "@adobe/generator-app-api-mesh"

        items, _ = engine.sort(templates, {"orderBy": "publishDate desc"})
        assert names_of(items) == [
            "@adobe/generator-app-api-mesh",
            "@adobe/generator-app-asset-compute",
            "@adobe/generator-app-excshell",
        ]

    def test_unknown_order_by_leaves_order(self, engine, templates):
        """Test an orderBy with no usable keys is ignored."""
        items, applied = engine.sort(templates, {"orderBy": "popularity desc"})
        assert items == templates
        assert applied == [("orderBy", "popularity desc")]

    def test_unknown_order_by_still_echoed(self, engine, templates):
        """Test an orderBy with no usable keys still appears in the query string."""
        result = engine.apply(templates, {"orderBy": "bogus"})
        assert result.query_string == "?orderBy=bogus"

    def test_mixed_value_types_do_not_fail(self):
        """Test values of different types sort without comparing across types."""
        records = [
            {"name": "a", "publishDate": "2022-01-01"},
            {"name": "b", "publishDate": 5},
            {"name": "c", "publishDate": "2021-01-01"},
        ]
        ascending = sort_templates(records, [SortKey("publishDate")])
        descending = sort_templates(records, [SortKey("publishDate", SortDirection.DESC)])

        assert names_of(ascending) == ["b", "c", "a"]
        assert names_of(descending) == ["a", "c", "b"]


class TestApply:
    """Test cases for the full query pipeline."""

    @pytest.fixture
    def engine(self):
        return TemplateQueryEngine(FILTER_CONFIG)

    def test_query_string_echo(self, engine, templates):
        """Test applied parameters are echoed in filter order, tokens trimmed."""
        result = engine.apply(templates, {
            "orderBy": "names   desc",
            "unknown": "value",
            "categories": " ui , !graphql ",
            "names": "*",
        })

        assert result.query_string == "?names=*&categories=ui,!graphql&orderBy=names desc"
        assert names_of(result.items) == ["@adobe/generator-app-excshell"]

    def test_no_params(self, engine, templates):
        """Test an empty query returns everything and an empty echo."""
        result = engine.apply(templates, {})

        assert result.items == templates
        assert result.query_string == ""
        assert result.next_query_string is None

    def test_filtering_is_idempotent(self, engine, templates):
        """Test applying the same filters twice changes nothing."""
        params = {"categories": "action", "statuses": "!Rejected"}
        once = engine.apply(templates, params).items
        twice = engine.apply(once, params).items
        assert once == twice

    def test_filters_combine_with_and(self, engine, templates):
        """Test every present parameter narrows the result."""
        result = engine.apply(templates, {"categories": "action", "apis": "AssetComputeSDK"})
        assert names_of(result.items) == ["@adobe/generator-app-asset-compute"]

    def test_size_truncates_and_links_next_page(self, engine, templates):
        """Test size returns one page and a next page query."""
        result = engine.apply(templates, {"orderBy": "names"}, size=1)

        assert len(result.items) == 1
        assert result.total == 3
        assert result.has_more is True
        assert result.query_string == "?orderBy=names&size=1"
        assert result.next_query_string == "?orderBy=names&size=1&page=2"

    def test_last_page_has_no_next(self, engine, templates):
        """Test the last page carries no next query."""
        result = engine.apply(templates, {}, size=2, page=2)

        assert names_of(result.items) == ["@adobe/generator-app-api-mesh"]
        assert result.has_more is False
        assert result.next_query_string is None
        assert result.query_string == "?size=2&page=2"

    def test_input_not_mutated(self, engine, templates):
        """Test the engine never modifies the input collection."""
        snapshot = [dict(t) for t in templates]
        engine.apply(templates, {"orderBy": "names desc", "categories": "ui"})
        assert templates == snapshot
