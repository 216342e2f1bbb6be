"""Services Layer — transactional reconciliation, aggregation, and search over the store.

Invariants:
    - Services own their transactions: one commit per record in batch operations
    - Every dedup write goes through services/derived_key.py

Design Decisions:
    - One service class per aggregate (knowledge, sessions, patterns, teams)
"""
