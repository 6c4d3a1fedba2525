"""
Template query package.

Implements the list endpoint's filtering and sorting over an in-memory
template collection. Filters are described by a fixed table of
`FilterConfig` entries, each with a `FilterKind` deciding how the
comma-separated query value is matched.

Modules of interest:
- models: Filter table, sort aliases, field value variants and results.
- engine: Token parsing, per-kind matching and stable multi-key sorting.
"""
