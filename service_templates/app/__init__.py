"""
Template Registry Service package.

This package stores project templates and serves them to developer
tooling. It provides:

- app.main: API surface for listing, reading, creating, updating,
  deleting and installing templates, plus health and metrics.
- app.query: Filter and sort engine behind the list endpoint.
- app.entitlements: Entitlement evaluation for single-template reads.
- app.adapters: HTTP clients for IMS, the developer console, ACRS and GitHub.
- app.persistence: PostgreSQL storage for template documents.
- app.install: Console project creation from a template.

Guidelines:
- The service is stateless; every request reads what it needs.
- External calls within a request are made one after another.
"""
