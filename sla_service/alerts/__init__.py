"""
Alerts Module
=============

Bounded Context for SLA alerts.

Responsibilities:
- Classify how critical a request's deadline is
- Keep one live alert per request and flow, escalating in place
- E-mail the assignee once per escalation to critical
- Daily digest of high and critical alerts
- Hot-reloadable alert thresholds (YAML + watchdog)
"""

__version__ = "1.0.0"
