"""Configuration from environment."""

import os

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
KEY_PREFIX = "eclipse:"
EMAIL_QUEUE_KEY = "eclipse:email_queue"
NOTIFICATIONS_KEY = "eclipse:notifications"  # list, newest first
CHANGES_CHANNEL_PREFIX = "eclipse:changes:"
WRITE_LOCK_KEY = "eclipse:lock:write"
WRITE_LOCK_TTL = 5
PROCESSING_LOCK_PREFIX = "eclipse:lock:processing:"
PROCESSING_LOCK_TTL = 300

# "incremental": later jobs in a batch see the load of earlier assignments.
# "batch": every job is scored against the snapshot taken before the batch.
ASSIGNMENT_POLICY = os.environ.get("ASSIGNMENT_POLICY", "incremental")

OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")
OPENAI_TIMEOUT = 30.0

SENDGRID_BASE_URL = "https://api.sendgrid.com/v3"
SENDER_EMAIL = "noreply@eclipse-ai.com"
SENDER_NAME = "Eclipse AI Assistant"

ECLIPSE_BASE_URL = os.environ.get("ECLIPSE_BASE_URL", "https://api.eclipse.example.com")

# Circuit breaker around the LLM API
CIRCUIT_FAILURE_THRESHOLD = 3
CIRCUIT_SLOW_CALL_MS = 20000
CIRCUIT_RESET_SECONDS = 60


def get_openai_api_key() -> str:
    return (os.environ.get("OPENAI_API_KEY") or "").strip()


def get_sendgrid_api_key() -> str:
    return (os.environ.get("SENDGRID_API_KEY") or "").strip()


def get_eclipse_credentials() -> tuple:
    """Return (client_id, client_secret) for the Eclipse API."""
    return (
        (os.environ.get("ECLIPSE_CLIENT_ID") or "").strip(),
        (os.environ.get("ECLIPSE_CLIENT_SECRET") or "").strip(),
    )


def get_slack_webhook_url() -> str:
    """Slack webhook; if unset, high-priority job notifications are only logged."""
    return (os.environ.get("SLACK_WEBHOOK_URL") or "").strip()


def get_assignment_policy() -> str:
    policy = (os.environ.get("ASSIGNMENT_POLICY") or ASSIGNMENT_POLICY).strip().lower()
    return policy if policy in ("incremental", "batch") else "incremental"
