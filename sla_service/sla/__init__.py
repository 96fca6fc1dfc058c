"""
SLA Tracking Module
===================

Bounded Context for request lifecycle tracking against SLA policies.

Responsibilities:
- Derive each request's SLA state (days used, compliance tag, lifecycle state)
- Single-request create/update/delete with duplicate and reference checks
- Daily recompute of every open request in the operating timezone
- Persistence of requests and master data (policies, people, role tags)
"""

__version__ = "1.0.0"
