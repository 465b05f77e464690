"""
Ledger Kernel

A double-entry ledger for household and small-business books:
- Tenant-scoped chart of accounts with an explicit parent/child tree
- Balanced, immutable journal entries with per-tenant sequence numbers
- Reversal by mirror-image entry, never by mutation
- Template-driven postings for everyday business documents
"""

__version__ = "0.1.0"
