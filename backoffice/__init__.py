"""
Insurance back-office aggregation layer.

This package rebuilds claims and contracts from independently keyed
collections, searches them with cursor pagination, and writes composite
records atomically:
- database: the document store contract and its in-memory / SQL backends
- search: query composition, cursors, paged execution
- aggregation: fan-out reads, member relationships, atomic writes
- services: the operations callers use (claims, contracts, catalogue, payments)
- api: a FastAPI surface over the services

Key rule:
- Services never pick a backend themselves; they receive a DocumentStore.
- The selection of backends happens in ONE place (backoffice/api/dependencies.py).
"""
