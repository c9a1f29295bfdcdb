"""
Dashboard API Integration for Scrum Health

Reads threshold configs and health metrics from a remote scrum dashboard and
writes values, approvals and sprint calculations back to it.
"""

import logging
import os
from typing import Optional

import httpx

from ..classifier import MetricColor, MetricConfig
from ..metrics import HealthMetricRecord, metric_value_from_raw

logger = logging.getLogger(__name__)


def config_from_payload(payload: dict) -> MetricConfig:
    """Build a MetricConfig from the API's camelCase JSON."""
    red = payload.get("redThreshold")
    return MetricConfig(
        metric_name=payload["metricName"],
        green_threshold=float(payload.get("greenThreshold") or 0),
        yellow_threshold=float(payload.get("yellowThreshold") or 0),
        red_threshold=float(red) if red not in (None, "") else None,
        is_higher_better=bool(payload.get("isHigherBetter", True)),
        team_id=payload.get("teamId"),
    )


def record_from_payload(payload: dict) -> HealthMetricRecord:
    raw = payload.get("value")
    if raw in (None, ""):
        raw = payload.get("stringValue")
    record = HealthMetricRecord(
        team_id=payload["teamId"],
        metric_name=payload["metricName"],
        sprint_number=str(payload.get("sprintNumber", "")),
        value=metric_value_from_raw(raw),
        id=payload.get("id"),
        po_approved=bool(payload.get("poApproved", False)),
        po_approved_by=payload.get("poApprovedBy"),
        po_approval_comment=payload.get("poApprovalComment"),
    )
    color = payload.get("actualColor")
    if color in {c.value for c in MetricColor}:
        record.actual_color = MetricColor(color)
    return record


class DashboardApiClient:
    """
    Async client for the host dashboard's REST API.

    Usage:
        client = DashboardApiClient(url="https://scrum.example.com", token="...")
        configs = await client.get_metric_configs(team_id=3)
        metrics = await client.get_health_metrics(team_id=3)
    """

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0
    ):
        self.url = (url or os.getenv("SCRUM_HEALTH_API_URL", "")).rstrip("/")
        self.token = token or os.getenv("SCRUM_HEALTH_API_TOKEN")
        self.transport = transport
        self.timeout = timeout

        if not self.url:
            raise ValueError(
                "Dashboard URL required. Set SCRUM_HEALTH_API_URL env var or pass url parameter."
            )

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None
    ):
        """Make a request to the dashboard API."""
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.request(
                method,
                f"{self.url}/api{endpoint}",
                params=params,
                json=json,
                headers=self._headers(),
            )
            if response.is_error:
                logger.warning("%s %s failed with %s", method, endpoint, response.status_code)
            response.raise_for_status()
            return response.json() if response.content else {}

    async def get_metric_configs(self, team_id: int) -> list[MetricConfig]:
        data = await self._request("GET", f"/teams/{team_id}/metric-configs")
        return [config_from_payload(item) for item in data]

    async def get_health_metrics(
        self,
        team_id: int,
        sprint_number: Optional[str] = None
    ) -> list[HealthMetricRecord]:
        """
        Fetch a team's recorded metrics.

        Args:
            team_id: Team to read
            sprint_number: Optional sprint filter (e.g. "S04")
        """
        params = {"sprint": sprint_number} if sprint_number else None
        data = await self._request("GET", f"/teams/{team_id}/health-metrics", params=params)
        return [record_from_payload(item) for item in data]

    async def record_metric(
        self,
        team_id: int,
        metric_name: str,
        sprint_number: str,
        value: str
    ) -> dict:
        return await self._request(
            "POST",
            f"/teams/{team_id}/health-metrics",
            json={
                "metricName": metric_name,
                "sprintNumber": sprint_number,
                "value": value,
            },
        )

    async def approve_metric(self, metric_id: int, comment: Optional[str] = None) -> dict:
        """Mark a metric PO-approved; the server records the approver from the session."""
        logger.info("Approving metric %s", metric_id)
        return await self._request(
            "POST",
            f"/health-metrics/{metric_id}/approve",
            json={"comment": comment},
        )

    async def save_calculation(self, calculation: dict) -> dict:
        return await self._request("POST", "/sprint-calculations", json=calculation)
