"""
Database Migration Toolkit

Moves records between heterogeneous databases (document stores and
relational databases) by streaming them through a user-defined field mapping.

Supports:
- Multiple connectors (Firestore, PostgreSQL, Supabase, MongoDB, in-memory)
- Field mapping with nested paths, type coercion and flattening
- Batch streaming with progress snapshots
- Write retries for partially failed batches
- In-memory job tracking for external pollers (HTTP API, CLI)
"""

__version__ = "0.1.0"
