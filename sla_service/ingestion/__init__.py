"""
Ingestion Module
================

Bounded Context for bulk request uploads.

Responsibilities:
- Validate spreadsheet rows one by one
- Resolve or create people, SLA policies and role tags by natural key
- Reject duplicate requests so re-uploads are harmless
- Report per-row errors without failing the batch
"""

__version__ = "1.0.0"
