"""Pydantic models for agents, jobs, candidates, emails and API payloads."""

import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator

JobType = Literal["permanent", "contract", "locum"]
JobStatus = Literal["open", "filled", "closed"]
Urgency = Literal["low", "medium", "high"]
JobSource = Literal["manual", "email", "eclipse"]
CandidateStatus = Literal["active", "inactive", "placed"]
WorkloadStatus = Literal["available", "moderate", "busy", "overloaded"]
Priority = Literal["high", "medium", "low"]
DoctorEmailType = Literal["job_opportunity", "compliance_request", "interview_invitation"]
DoctorEmailStatus = Literal["draft", "pending_approval", "approved", "sent", "rejected"]
ComplianceCategory = Literal["identity", "qualifications", "registration", "background", "health"]

GENERAL_SPECIALIZATION = "General"


def generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Agents ---

class AgentCapacity(BaseModel):
    max_active_jobs: int = Field(default=10, ge=0)
    max_candidates: int = Field(default=50, ge=0)
    hours_per_week: int = Field(default=40, ge=0)


class AgentMetrics(BaseModel):
    avg_response_time: float = Field(default=0.0, ge=0, description="Hours")
    placements_this_month: int = 0
    success_rate: float = 0.0


class AgentPreferences(BaseModel):
    urgency_weighting: int = Field(default=5, ge=1, le=10)
    max_travel_distance: Optional[int] = None
    preferred_contact_method: str = "email"


class AgentCreate(BaseModel):
    """Incoming agent payload for POST /agents."""

    name: str
    email: str
    specializations: List[str] = Field(default_factory=list)
    grades: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    is_active: bool = True
    capacity: AgentCapacity = Field(default_factory=AgentCapacity)
    metrics: AgentMetrics = Field(default_factory=AgentMetrics)
    preferences: AgentPreferences = Field(default_factory=AgentPreferences)

    @model_validator(mode="after")
    def active_agents_have_capacity(self):
        if self.is_active:
            c = self.capacity
            if c.max_active_jobs <= 0 or c.max_candidates <= 0 or c.hours_per_week <= 0:
                raise ValueError("Active agents need positive capacity values")
        return self


class Agent(AgentCreate):
    """A recruitment consultant who owns jobs and candidates."""

    id: str = Field(default_factory=lambda: generate_id("agent"))


class AgentUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    specializations: Optional[List[str]] = None
    grades: Optional[List[str]] = None
    locations: Optional[List[str]] = None
    is_active: Optional[bool] = None
    capacity: Optional[AgentCapacity] = None
    metrics: Optional[AgentMetrics] = None
    preferences: Optional[AgentPreferences] = None


# --- Emails ---

class EmailJob(BaseModel):
    """An inbound job email (NHS trusts send vacancies by email)."""

    id: str = Field(default_factory=lambda: generate_id("email"))
    subject: str
    from_address: str
    to: str = ""
    body: str = ""
    received_date: str = Field(default_factory=utc_now_iso)
    processed: bool = False


# --- Jobs ---

class JobCreate(BaseModel):
    """Incoming job payload for POST /jobs."""

    title: str
    client: str = "NHS Trust"
    location: str = "UK"
    type: JobType = "contract"
    specialization: str = GENERAL_SPECIALIZATION
    salary: str = "Competitive"
    description: str = ""
    requirements: List[str] = Field(default_factory=list)
    posted_date: str = Field(default_factory=utc_now_iso)
    status: JobStatus = "open"
    urgency: Urgency = "medium"
    grade: Optional[str] = None
    source: JobSource = "manual"
    original_email_id: Optional[str] = None
    assigned_agent: Optional[str] = None


class Job(JobCreate):
    id: str = Field(default_factory=lambda: generate_id("job"))


class JobUpdate(BaseModel):
    title: Optional[str] = None
    client: Optional[str] = None
    location: Optional[str] = None
    type: Optional[JobType] = None
    specialization: Optional[str] = None
    salary: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[List[str]] = None
    status: Optional[JobStatus] = None
    urgency: Optional[Urgency] = None
    grade: Optional[str] = None
    assigned_agent: Optional[str] = None


# --- Candidates ---

class Compliance(BaseModel):
    dbs: bool = False
    right_to_work: bool = False
    registration: bool = False


class CandidateCreate(BaseModel):
    """Incoming candidate payload for POST /candidates."""

    name: str
    email: str = ""
    phone: str = ""
    specialization: str
    experience: int = Field(default=0, ge=0, description="Years")
    location: str = ""
    cv_summary: Optional[str] = None
    last_active: str = Field(default_factory=utc_now_iso)
    status: CandidateStatus = "active"
    compliance: Compliance = Field(default_factory=Compliance)
    grade: Optional[str] = None
    assigned_agent: Optional[str] = None


class Candidate(CandidateCreate):
    id: str = Field(default_factory=lambda: generate_id("cand"))


class CandidateUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    specialization: Optional[str] = None
    experience: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    cv_summary: Optional[str] = None
    status: Optional[CandidateStatus] = None
    compliance: Optional[Compliance] = None
    grade: Optional[str] = None
    assigned_agent: Optional[str] = None


class CandidateMatch(BaseModel):
    candidate_id: str
    job_id: str
    score: float = Field(ge=0, le=100)
    reasoning: str = ""
    matched_skills: List[str] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    assigned_agent: Optional[str] = None
    priority: Priority = "low"


def match_priority(score: float) -> Priority:
    if score >= 80:
        return "high"
    if score >= 60:
        return "medium"
    return "low"


# --- Workload ---

class WorkloadBreakdown(BaseModel):
    active_jobs: int
    candidates_managed: int
    urgent_tasks: int
    response_time: int


class WorkloadResult(BaseModel):
    """Derived workload of one agent; recomputed on every request, never stored."""

    total_score: int = Field(ge=0, le=100)
    breakdown: WorkloadBreakdown
    status: WorkloadStatus
    recommendation: str


class AgentWorkload(BaseModel):
    agent: Agent
    workload: WorkloadResult
    active_jobs: int
    active_candidates: int


class TeamStats(BaseModel):
    average_workload: int
    overloaded_agents: int
    available_agents: int
    total_active_jobs: int
    total_active_candidates: int


class TeamWorkload(BaseModel):
    distribution: List[AgentWorkload]
    team_stats: TeamStats


class RebalanceSuggestion(BaseModel):
    type: Literal["redistribute_job", "redistribute_candidate", "urgent_support"] = "redistribute_job"
    from_agent: str = Field(serialization_alias="from")
    to_agent: str = Field(serialization_alias="to")
    item: str
    reason: str


class AgentNotification(BaseModel):
    agent_id: str
    job_id: str
    message: str
    priority: Urgency
    created_at: str = Field(default_factory=utc_now_iso)


class ProcessEmailsResult(BaseModel):
    """Outcome of processing a batch of job emails."""

    jobs: List[Job] = Field(default_factory=list)
    matches: List[CandidateMatch] = Field(default_factory=list)
    notifications: List[AgentNotification] = Field(default_factory=list)


class EmailsAcceptedResponse(BaseModel):
    """202 Accepted response after fetching emails into the processing queue."""

    queued: List[str]
    status: str = "accepted"


# --- Doctor communication ---

class ComplianceDocument(BaseModel):
    id: str
    name: str
    description: str
    required: bool = True
    category: ComplianceCategory


class DoctorEmail(BaseModel):
    """An outbound email to a doctor, held for agent approval before sending."""

    id: str = Field(default_factory=lambda: generate_id("demail"))
    candidate_id: str
    job_id: str
    type: DoctorEmailType
    subject: str
    body: str
    status: DoctorEmailStatus = "pending_approval"
    ai_generated: bool = False
    agent_approved: Optional[bool] = None
    agent_notes: Optional[str] = None
    sent_at: Optional[str] = None
    message_id: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)


class DoctorEmailDraftRequest(BaseModel):
    candidate_id: str
    job_id: str
    type: DoctorEmailType = "job_opportunity"


class DoctorEmailUpdate(BaseModel):
    subject: Optional[str] = None
    body: Optional[str] = None
    agent_notes: Optional[str] = None


class DashboardStats(BaseModel):
    active_candidates: int
    open_jobs: int
    urgent_jobs: int
    average_match_score: int
    compliance_issues: int


T = TypeVar("T", bound=BaseModel)


def apply_update(record: T, patch: BaseModel) -> T:
    """Return a validated copy of record with only the fields set on patch replaced."""
    changes = patch.model_dump(exclude_unset=True)
    return type(record).model_validate({**record.model_dump(), **changes})


class AssignmentResult(BaseModel):
    job: Job
    agent: Optional[Agent] = None


class CVSummaryRequest(BaseModel):
    cv_text: str = Field(min_length=1)


class DoctorReplyRequest(BaseModel):
    response_text: str = Field(min_length=1)
