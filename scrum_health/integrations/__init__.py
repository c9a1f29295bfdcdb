"""
Scrum Health - Integrations

Clients for systems outside this service:
- Dashboard API: threshold configs, health metrics, approvals, sprint calculations
"""

from .dashboard_api import DashboardApiClient, config_from_payload, record_from_payload

__all__ = [
    "DashboardApiClient",
    "config_from_payload",
    "record_from_payload",
]
