"""
SLA Lifecycle Service
=====================

Tracks requests against SLA policies, recomputes their compliance state once
per day, raises escalating alerts and ingests requests in bulk.
"""

__version__ = "1.0.0"
