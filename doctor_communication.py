"""Outbound doctor emails: AI drafting, compliance checks and the approval workflow."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from llm import LLMError, OpenAIService
from mailer import SendGridService, SendResult
from models import (
    Candidate,
    ComplianceDocument,
    DoctorEmail,
    DoctorEmailUpdate,
    Job,
    apply_update,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_CONFIDENCE = 75
FALLBACK_RESPONSE_CONFIDENCE = 60

BASE_COMPLIANCE_DOCUMENTS = (
    ComplianceDocument(id="dbs", name="DBS Check", description="Disclosure and Barring Service check", category="background"),
    ComplianceDocument(id="right_to_work", name="Right to Work", description="Proof of right to work in the UK", category="identity"),
    ComplianceDocument(id="gmc_registration", name="GMC Registration", description="General Medical Council registration", category="registration"),
    ComplianceDocument(id="cv", name="Updated CV", description="Current curriculum vitae", category="qualifications"),
    ComplianceDocument(id="references", name="Professional References", description="Two professional references", category="qualifications"),
)

# requirement -> extra document
REQUIREMENT_DOCUMENTS = {
    "ACLS": ComplianceDocument(id="acls", name="ACLS Certification", description="Advanced Cardiovascular Life Support certification", category="qualifications"),
    "MRCP": ComplianceDocument(id="mrcp", name="MRCP Certificate", description="Membership of the Royal Colleges of Physicians", category="qualifications"),
}

# Documents tracked on Candidate.compliance; anything else is assumed missing
TRACKED_COMPLIANCE = {
    "dbs": "dbs",
    "right_to_work": "right_to_work",
    "gmc_registration": "registration",
}


class WorkflowError(Exception):
    """Raised when a doctor email is moved to a status its current status does not allow."""


def convert_to_html(text: str) -> str:
    html = text.replace("\n\n", "</p><p>").replace("\n", "<br>")
    return f"<p>{html}</p>"


def get_required_compliance_documents(job: Job) -> List[ComplianceDocument]:
    docs = list(BASE_COMPLIANCE_DOCUMENTS)
    for requirement, doc in REQUIREMENT_DOCUMENTS.items():
        if requirement in job.requirements:
            docs.append(doc)
    return docs


def get_missing_compliance_documents(
    candidate: Candidate, required: Sequence[ComplianceDocument]
) -> List[ComplianceDocument]:
    missing = []
    for doc in required:
        field = TRACKED_COMPLIANCE.get(doc.id)
        if field is None or not getattr(candidate.compliance, field):
            missing.append(doc)
    return missing


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"• {item}" for item in items)


def fallback_job_email(candidate: Candidate, job: Job, agent_name: str) -> Dict[str, str]:
    return {
        "subject": f"Exciting {job.specialization} Opportunity at {job.client}",
        "body": (
            f"Dear {candidate.name},\n\n"
            "I hope this email finds you well. I'm reaching out because I believe you would be an "
            f"excellent fit for a {job.specialization} position we have available.\n\n"
            f"Position: {job.title}\nLocation: {job.location}\nSalary: {job.salary}\nType: {job.type}\n\n"
            f"This role at {job.client} offers an exciting opportunity to work in a dynamic healthcare "
            f"environment. Given your {candidate.experience} years of experience in "
            f"{candidate.specialization}, I believe this position aligns perfectly with your expertise.\n\n"
            f"Key requirements include:\n{_bullets(job.requirements)}\n\n"
            "Would you be interested in learning more about this opportunity? I'd be happy to discuss "
            "the details and answer any questions you might have.\n\n"
            f"Best regards,\n{agent_name}\nRecruitment Consultant"
        ),
    }


def fallback_compliance_email(candidate: Candidate, missing: Sequence[str]) -> Dict[str, str]:
    return {
        "subject": "Compliance Documentation Required",
        "body": (
            f"Dear {candidate.name},\n\n"
            "Thank you for your interest in our opportunities. To proceed with your application, "
            "we need to collect some additional compliance documentation.\n\n"
            f"Missing documents:\n{_bullets(missing)}\n\n"
            "Please provide these documents at your earliest convenience. You can upload them "
            "through our secure portal or email them directly to me.\n\n"
            "If you have any questions about the required documentation, please don't hesitate "
            "to reach out.\n\nBest regards,\nYour Recruitment Team"
        ),
    }


def fallback_response() -> Dict[str, object]:
    return {
        "subject": "Re: Your Response",
        "body": (
            "Thank you for your response. I've noted your feedback and will follow up accordingly.\n\n"
            "If you have any additional questions or need further assistance, please don't "
            "hesitate to reach out.\n\nBest regards,\nYour Recruitment Team"
        ),
        "confidence": FALLBACK_RESPONSE_CONFIDENCE,
    }


class DoctorCommunicationService:
    def __init__(self, llm: Optional[OpenAIService] = None, mailer: Optional[SendGridService] = None):
        self.llm = llm
        self.mailer = mailer or SendGridService()

    def _generate(self, prompt: str) -> Dict[str, str]:
        if self.llm is None:
            raise LLMError("No LLM configured")
        return self.llm.generate_email(prompt)

    def _job_opportunity_content(self, candidate: Candidate, job: Job, agent_name: str) -> Tuple[Dict[str, str], bool]:
        """Return (content, generated_by_llm)."""
        prompt = (
            "Generate a professional job opportunity email for a medical professional.\n\n"
            f"Candidate: {candidate.name} - {candidate.specialization} specialist with "
            f"{candidate.experience} years experience\n"
            f"Job: {job.title} at {job.client} in {job.location}\n"
            f"Salary: {job.salary}\n"
            f"Requirements: {', '.join(job.requirements)}\n\n"
            "The email should:\n1. Be professional and personalized\n"
            "2. Highlight why this job matches their profile\n"
            "3. Include key job details (location, salary, requirements)\n"
            "4. Have a clear call-to-action\n"
            f"5. Be from the recruitment agent: {agent_name}\n\n"
            'Return JSON with "subject" and "body" fields.'
        )
        try:
            return self._generate(prompt), True
        except LLMError as e:
            logger.warning("Job email generation failed, using template: %s", e)
            return fallback_job_email(candidate, job, agent_name), False

    def generate_job_opportunity_email(self, candidate: Candidate, job: Job, agent_name: str) -> Dict[str, str]:
        return self._job_opportunity_content(candidate, job, agent_name)[0]

    def _compliance_content(self, candidate: Candidate, missing: Sequence[str]) -> Tuple[Dict[str, str], bool]:
        prompt = (
            "Generate a professional email requesting compliance paperwork from a medical professional.\n\n"
            f"Candidate: {candidate.name}\n"
            f"Missing compliance documents: {', '.join(missing)}\n\n"
            "The email should:\n1. Be professional and clear\n"
            "2. Explain why these documents are needed\n"
            "3. Provide clear instructions on how to submit\n"
            "4. Include deadline if applicable\n5. Be supportive and helpful\n\n"
            'Return JSON with "subject" and "body" fields.'
        )
        try:
            return self._generate(prompt), True
        except LLMError as e:
            logger.warning("Compliance email generation failed, using template: %s", e)
            return fallback_compliance_email(candidate, missing), False

    def generate_compliance_request_email(self, candidate: Candidate, missing: Sequence[str]) -> Dict[str, str]:
        return self._compliance_content(candidate, missing)[0]

    def generate_response_to_doctor(self, original: DoctorEmail, doctor_response: str) -> Dict[str, object]:
        """Draft a reply to a doctor. Returns subject, body and a 0-100 confidence."""
        prompt = (
            "Generate a professional response to a doctor's email reply.\n\n"
            f"Original email context: {original.body}\n"
            f"Doctor's response: {doctor_response}\n\n"
            "The response should:\n1. Be professional and helpful\n"
            "2. Address any questions or concerns\n3. Provide next steps if needed\n"
            "4. Maintain the relationship\n\n"
            'Return JSON with "subject", "body", and "confidence" (0-100) fields.'
        )
        try:
            if self.llm is None:
                raise LLMError("No LLM configured")
            data = self.llm.generate_response(prompt)
        except LLMError as e:
            logger.warning("Doctor reply generation failed, using template: %s", e)
            return fallback_response()
        return {
            "subject": data["subject"],
            "body": data["body"],
            "confidence": data.get("confidence") or DEFAULT_RESPONSE_CONFIDENCE,
        }

    def send_email_to_doctor(self, to: str, subject: str, body: str) -> SendResult:
        return self.mailer.send_email(to, subject, convert_to_html(body), body)

    # --- approval workflow ---

    def draft_email(
        self,
        candidate: Candidate,
        job: Job,
        email_type: str,
        agent_name: str,
    ) -> DoctorEmail:
        """Generate an email for agent approval. Nothing is sent until approve()."""
        if email_type == "compliance_request":
            missing = get_missing_compliance_documents(candidate, get_required_compliance_documents(job))
            content, ai_generated = self._compliance_content(candidate, [d.name for d in missing])
        else:
            content, ai_generated = self._job_opportunity_content(candidate, job, agent_name)
        return DoctorEmail(
            candidate_id=candidate.id,
            job_id=job.id,
            type=email_type,
            subject=content["subject"],
            body=content["body"],
            status="pending_approval",
            ai_generated=ai_generated,
        )

    def approve(self, email: DoctorEmail, recipient: str) -> DoctorEmail:
        """Approve and send a pending email (or retry an approved one that failed to send)."""
        if email.status not in ("pending_approval", "approved"):
            raise WorkflowError(f"Cannot approve email in status {email.status}")
        email = email.model_copy(update={"status": "approved", "agent_approved": True})
        result = self.send_email_to_doctor(recipient, email.subject, email.body)
        if not result.success:
            logger.warning("Approved email %s could not be sent: %s", email.id, result.error)
            return email
        return email.model_copy(
            update={"status": "sent", "sent_at": utc_now_iso(), "message_id": result.message_id}
        )

    def reject(self, email: DoctorEmail) -> DoctorEmail:
        if email.status != "pending_approval":
            raise WorkflowError(f"Cannot reject email in status {email.status}")
        return email.model_copy(update={"status": "rejected", "agent_approved": False})

    def edit(self, email: DoctorEmail, changes: DoctorEmailUpdate) -> DoctorEmail:
        if email.status not in ("draft", "pending_approval"):
            raise WorkflowError(f"Cannot edit email in status {email.status}")
        return apply_update(email, changes)
