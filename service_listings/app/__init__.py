"""
Listings Service package for the Property Listings platform.

This package serves the property catalog: CRUD and search over listings,
per-user favorites and recommendations, all behind a Redis read-through
cache. It provides:

- app.main: API surface, dependency wiring and health.
- app.cache: Store adapter, fail-open cache service, key scheme,
  invalidation rules and the read-through decorator.
- app.domain: Listing models plus the query-string filter and sort builders.
- app.persistence: Document store contract with in-memory and PostgreSQL
  backends.
- app.services: Business logic for properties, favorites and
  recommendations.
- app.auth: Bearer token verification.

Guidelines:
- The cache is an optimization. A cache outage must never fail a request.
- Every write invalidates before it responds; reads may be served stale
  only within the window the invalidation rules allow.
"""
