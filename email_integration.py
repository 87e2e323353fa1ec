"""NHS job-email ingestion: fetch, parse, assign an agent and match candidates."""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from agents import find_best_agent
from classifier import fallback_parse
from llm import LLMError, OpenAIService, as_str_list
from models import (
    GENERAL_SPECIALIZATION,
    Agent,
    AgentNotification,
    Candidate,
    CandidateMatch,
    EmailJob,
    Job,
    ProcessEmailsResult,
    generate_id,
    match_priority,
)

logger = logging.getLogger(__name__)

NHS_DOMAINS = (
    "nhs.net",
    "nhs.uk",
    "nhsmail.nhs.uk",
    "england.nhs.uk",
    "wales.nhs.uk",
    "scot.nhs.uk",
    "hscni.net",
)

JOB_TYPES = ("permanent", "contract", "locum")
URGENCIES = ("low", "medium", "high")

PARSE_PROMPT = """Extract job details from this NHS recruitment email. Return a JSON object with the following structure:
{{
  "title": "job title",
  "specialization": "medical specialization",
  "grade": "medical grade (e.g., Consultant, ST1-ST8, SHO, etc.)",
  "location": "location",
  "salary": "salary/rate information",
  "type": "permanent|contract|locum",
  "urgency": "high|medium|low",
  "requirements": ["requirement1", "requirement2"],
  "description": "brief description"
}}

Email Subject: {subject}
Email Body: {body}

Focus on medical terminology and NHS grading systems. If urgency indicators like "urgent", "ASAP", "immediate" are present, set urgency to "high".
"""


def is_nhs_email(address: str) -> bool:
    address = (address or "").lower()
    return any(domain in address for domain in NHS_DOMAINS)


def extract_client_from_email(address: str) -> str:
    """Guess the trust name from the sender domain, e.g. royallondon.nhs.uk -> Royallondon NHS Trust."""
    domain = address.split("@", 1)[1] if "@" in address else ""
    if "nhs" in domain:
        label = re.sub(r"[-_]", " ", domain.split(".")[0])
        return re.sub(r"\b\w", lambda m: m.group().upper(), label) + " NHS Trust"
    return "NHS Trust"


def fetch_new_emails() -> List[EmailJob]:
    """Return unprocessed job emails from the inbox (simulated; no IMAP)."""
    now = datetime.now(timezone.utc)
    inbox = [
        EmailJob(
            id="email_1",
            subject="Urgent: Consultant Cardiologist Required - Royal London Hospital",
            from_address="recruitment@royallondon.nhs.uk",
            to="jobs@your-agency.com",
            body=(
                "Dear Recruitment Partner,\n\n"
                "We have an urgent requirement for a Consultant Cardiologist at Royal London Hospital.\n\n"
                "Position Details:\n"
                "- Title: Consultant Cardiologist\n"
                "- Grade: Consultant\n"
                "- Speciality: Cardiology\n"
                "- Location: London, UK\n"
                "- Start Date: ASAP\n"
                "- Duration: 6 months initially\n"
                "- Rate: £80-120 per hour\n"
                "- Requirements: GMC registration, CCT in Cardiology, 5+ years experience\n\n"
                "The successful candidate will join our busy cardiology department and provide "
                "comprehensive cardiac care including interventional procedures.\n\n"
                "Please submit suitable candidates urgently.\n\n"
                "Best regards,\nNHS Recruitment Team"
            ),
            received_date=now.isoformat(),
        ),
        EmailJob(
            id="email_2",
            subject="Emergency Medicine Registrar - Manchester Royal Infirmary",
            from_address="hr@manchester.nhs.uk",
            to="jobs@your-agency.com",
            body=(
                "Hello,\n\n"
                "We need an Emergency Medicine Registrar for immediate start.\n\n"
                "Details:\n"
                "- Position: Emergency Medicine Registrar\n"
                "- Grade: ST4-ST6\n"
                "- Location: Manchester, UK\n"
                "- Speciality: Emergency Medicine\n"
                "- Rate: £45-55/hour\n"
                "- Duration: 3 months\n"
                "- Requirements: MRCP, Emergency Medicine experience, ACLS\n\n"
                "Urgent requirement due to staff shortage.\n\n"
                "Thanks,\nManchester Royal Infirmary"
            ),
            received_date=(now - timedelta(hours=1)).isoformat(),
        ),
    ]
    return [email for email in inbox if is_nhs_email(email.from_address)]


def parse_job_from_email(email: EmailJob, llm: Optional[OpenAIService]) -> Dict[str, Any]:
    """Extract job fields with the LLM, falling back to keyword parsing."""
    parsed: Dict[str, Any]
    try:
        if llm is None:
            raise LLMError("No LLM configured")
        parsed = llm.parse_job_email(PARSE_PROMPT.format(subject=email.subject, body=email.body))
    except LLMError as e:
        logger.warning("LLM parse failed for email %s, using keyword fallback: %s", email.id, e)
        parsed = fallback_parse(email.subject, email.body)
    parsed["client"] = extract_client_from_email(email.from_address)
    return parsed


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def build_job(email: EmailJob, parsed: Dict[str, Any]) -> Job:
    """Turn parsed fields into an open Job, defaulting anything missing."""
    job_type = parsed.get("type")
    urgency = str(parsed.get("urgency") or "").lower()
    return Job(
        id=generate_id("job"),
        title=_str_or_none(parsed.get("title")) or "Untitled Position",
        client=_str_or_none(parsed.get("client")) or "NHS Trust",
        location=_str_or_none(parsed.get("location")) or "UK",
        type=job_type if job_type in JOB_TYPES else "contract",
        specialization=_str_or_none(parsed.get("specialization")) or GENERAL_SPECIALIZATION,
        salary=_str_or_none(parsed.get("salary")) or "Competitive",
        description=_str_or_none(parsed.get("description")) or email.body,
        requirements=as_str_list(parsed.get("requirements")),
        posted_date=email.received_date,
        status="open",
        urgency=urgency if urgency in URGENCIES else "medium",
        grade=_str_or_none(parsed.get("grade")),
        source="email",
        original_email_id=email.id,
    )


def candidate_cv_text(candidate: Candidate) -> str:
    return candidate.cv_summary or (
        f"{candidate.name} - {candidate.specialization} with {candidate.experience} years experience"
    )


def find_matching_candidates(
    job: Job, candidates: Sequence[Candidate], llm: Optional[OpenAIService]
) -> List[CandidateMatch]:
    """Score active candidates of the same specialization against job, best first."""
    if llm is None:
        return []
    matches = []
    for candidate in candidates:
        if candidate.specialization != job.specialization or candidate.status != "active":
            continue
        try:
            result = llm.match_candidate_to_job(candidate_cv_text(candidate), job.description or job.title)
            score = max(0.0, min(100.0, float(result.get("score", 0))))
        except (LLMError, TypeError, ValueError) as e:
            logger.warning("Matching failed for candidate %s on job %s: %s", candidate.id, job.id, e)
            continue
        matches.append(
            CandidateMatch(
                candidate_id=candidate.id,
                job_id=job.id,
                score=score,
                reasoning=str(result.get("reasoning") or ""),
                matched_skills=as_str_list(result.get("matchedSkills")),
                gaps=as_str_list(result.get("gaps")),
                assigned_agent=job.assigned_agent,
                priority=match_priority(score),
            )
        )
    matches.sort(key=lambda m: m.score, reverse=True)
    return matches


def build_notification(job: Job, matches: Sequence[CandidateMatch]) -> Optional[AgentNotification]:
    if not job.assigned_agent or not matches:
        return None
    high = len([m for m in matches if m.priority == "high"])
    return AgentNotification(
        agent_id=job.assigned_agent,
        job_id=job.id,
        message=(
            f"New {job.urgency} priority job: {job.title} with {len(matches)} "
            f"candidate matches ({high} high priority)"
        ),
        priority=job.urgency,
    )


def process_email(
    email: EmailJob,
    agents: Sequence[Agent],
    jobs: Sequence[Job],
    candidates: Sequence[Candidate],
    llm: Optional[OpenAIService],
) -> ProcessEmailsResult:
    """Process one email against a snapshot of agents, jobs and candidates."""
    job = build_job(email, parse_job_from_email(email, llm))
    agent = find_best_agent(job, agents, jobs, candidates)
    if agent is not None:
        job = job.model_copy(update={"assigned_agent": agent.id})
    matches = find_matching_candidates(job, candidates, llm)
    notification = build_notification(job, matches)
    return ProcessEmailsResult(
        jobs=[job],
        matches=matches,
        notifications=[notification] if notification else [],
    )


def process_email_jobs(
    emails: Sequence[EmailJob],
    agents: Sequence[Agent],
    jobs: Sequence[Job],
    candidates: Sequence[Candidate],
    llm: Optional[OpenAIService],
    policy: str = "incremental",
) -> ProcessEmailsResult:
    """Process a batch of emails in order. Marks each successfully processed email.

    See agents.assign_jobs for the meaning of policy.
    """
    result = ProcessEmailsResult()
    working = list(jobs)
    for email in emails:
        try:
            one = process_email(email, agents, working, candidates, llm)
        except Exception as e:
            logger.exception("Error processing email %s: %s", email.id, e)
            continue
        if policy == "incremental":
            working.extend(one.jobs)
        result.jobs.extend(one.jobs)
        result.matches.extend(one.matches)
        result.notifications.extend(one.notifications)
        email.processed = True
    return result
