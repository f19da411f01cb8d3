"""
Test suite for schemasync.

This package contains tests for all schemasync components:
- Schema models, diffing and permission merging
- Reconciliation passes against the in-memory store
- The REST store against mocked HTTP responses
- Configuration loading and the CLI
"""
