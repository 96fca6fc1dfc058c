"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (SLA tracking,
alerts, ingestion).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add SLA or alert business rules to the shared kernel.
"""

__version__ = "1.0.0"
