"""
Webhook Notifier
Posts a run summary to a webhook URL once the run has ended.
Delivery failures are logged and never change the run's outcome.
"""
import logging
from typing import Any, Dict

import httpx

from pr_iterate.core.constants import RunStatus
from pr_iterate.models.report import Report

logger = logging.getLogger(__name__)


def build_payload(report: Report) -> Dict[str, Any]:
    return {
        "event": "success" if report.status == RunStatus.SUCCEEDED else report.status.value,
        "pr": report.target_id,
        "status": report.status.value,
        "iterations": report.iterations,
        "duration": round(report.total_elapsed, 2),
        "total_fixes": report.total_fixes,
        "fixes_by_category": report.fixes_by_category,
        "reason": report.reason,
    }


async def send_webhook(url: str, report: Report, timeout: float = 10.0) -> bool:
    """POST the summary payload. Returns True on a 2xx response."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, json=build_payload(report))
            response.raise_for_status()
        logger.info("Webhook delivered to %s", url)
        return True
    except httpx.HTTPError as exc:
        logger.warning("Failed to send webhook to %s: %s", url, exc)
        return False
