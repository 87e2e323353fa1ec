"""
Background worker: pull job emails from the Redis queue, parse, assign an agent,
match candidates and notify. Run: python worker.py
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load .env from project root (same dir as this file) before any config reads
load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env"))

from config import EMAIL_QUEUE_KEY, get_openai_api_key, get_slack_webhook_url
from email_integration import process_email
from llm import OpenAIService
from store import (
    acquire_processing_lock,
    dequeue_email_sync,
    get_record_sync,
    list_records_sync,
    push_notification_sync,
    release_processing_lock,
    save_record_sync,
)
from webhook import notify_assignment

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def process_queued_email(email_id: str, llm=None) -> None:
    """Process one queued email against the current store contents.

    Each email sees the jobs saved for earlier emails, so queued processing
    always follows the incremental assignment policy.
    """
    if not email_id:
        logger.warning("Empty email id on queue")
        return
    if not acquire_processing_lock(email_id):
        logger.warning("Skip email %s: already being processed", email_id)
        return
    try:
        email = get_record_sync("email_jobs", email_id)
        if email is None:
            logger.warning("Email %s not found in store", email_id)
            return
        if email.processed:
            logger.info("Email %s already processed", email_id)
            return
        agents = list_records_sync("agents")
        jobs = list_records_sync("jobs")
        candidates = list_records_sync("candidates")

        result = process_email(email, agents, jobs, candidates, llm)

        for job in result.jobs:
            save_record_sync("jobs", job)
        for match in result.matches:
            save_record_sync("matches", match)
        agent_names = {a.id: a.name for a in agents}
        for notification in result.notifications:
            push_notification_sync(notification)
            notify_assignment(notification, result.jobs[0], agent_names.get(notification.agent_id))
        email.processed = True
        save_record_sync("email_jobs", email)
        job = result.jobs[0]
        logger.info(
            "Processed email %s -> job %s agent=%s matches=%d",
            email_id, job.id, job.assigned_agent or "-", len(result.matches),
        )
    except Exception as e:
        logger.exception("Process failed for email %s: %s", email_id, e)
    finally:
        release_processing_lock(email_id)


def main() -> None:
    llm = OpenAIService() if get_openai_api_key() else None
    logger.info("Worker started, listening on queue %s", EMAIL_QUEUE_KEY)
    if llm is None:
        logger.info("OpenAI: not set (set OPENAI_API_KEY in .env), using keyword parsing")
    if get_slack_webhook_url():
        logger.info("Slack webhook: configured")
    else:
        logger.info("Slack webhook: not set (set SLACK_WEBHOOK_URL in .env)")
    while True:
        try:
            email_id = dequeue_email_sync(timeout=5)
            if email_id is not None:
                process_queued_email(email_id, llm)
        except KeyboardInterrupt:
            logger.info("Shutting down")
            sys.exit(0)
        except Exception as e:
            logger.exception("Worker error: %s", e)


if __name__ == "__main__":
    main()
