"""Slack webhook: notify when a high-priority job is assigned to an agent."""

import logging
from typing import Optional

import httpx

from config import get_slack_webhook_url
from models import AgentNotification, Job

logger = logging.getLogger(__name__)


def _build_message(notification: AgentNotification, job: Optional[Job], agent_name: Optional[str]) -> str:
    who = agent_name or notification.agent_id
    lines = [
        f":rotating_light: *High-priority job assigned* to {who}",
        f"*Job:* `{notification.job_id}` | {notification.message}",
    ]
    if job is not None:
        lines.append(f"*Client:* {job.client} | *Location:* {job.location} | *Grade:* {job.grade or 'n/a'}")
    return "\n".join(lines)


def notify_assignment(
    notification: AgentNotification,
    job: Optional[Job] = None,
    agent_name: Optional[str] = None,
) -> None:
    """POST to Slack for high-priority notifications. No-op if SLACK_WEBHOOK_URL unset."""
    if notification.priority != "high":
        return
    message = _build_message(notification, job, agent_name)
    slack_url = get_slack_webhook_url()
    if not slack_url:
        logger.info("Mock webhook would fire for job %s (agent %s)", notification.job_id, notification.agent_id)
        return
    try:
        resp = httpx.post(
            slack_url,
            json={"text": message},
            timeout=10.0,
        )
        resp.raise_for_status()
        logger.info("Slack webhook sent for job %s", notification.job_id)
    except httpx.HTTPError as e:
        err_detail = str(e)
        response = getattr(e, "response", None)
        if response is not None:
            err_detail += " | response: " + (response.text or "")[:200]
        logger.warning("Slack webhook failed for job %s: %s", notification.job_id, err_detail)
