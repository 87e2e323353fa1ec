"""Eclipse AI Assistant REST API: recruitment records, workload and job-email processing."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ValidationError

import store
from agents import assign_jobs, find_best_agent
from config import get_assignment_policy, get_openai_api_key
from csv_io import export_candidates, export_jobs, parse_candidates_csv
from doctor_communication import (
    DoctorCommunicationService,
    WorkflowError,
    get_missing_compliance_documents,
    get_required_compliance_documents,
)
from eclipse_api import EclipseAPIService, candidate_from_eclipse, job_from_eclipse
from email_integration import fetch_new_emails, find_matching_candidates, process_email_jobs
from llm import LLMError, OpenAIService
from models import (
    Agent,
    AgentCreate,
    AgentNotification,
    AgentUpdate,
    AssignmentResult,
    Candidate,
    CandidateCreate,
    CandidateMatch,
    CandidateUpdate,
    ComplianceDocument,
    CVSummaryRequest,
    DashboardStats,
    DoctorEmail,
    DoctorEmailDraftRequest,
    DoctorEmailUpdate,
    DoctorReplyRequest,
    EmailJob,
    EmailsAcceptedResponse,
    Job,
    JobCreate,
    JobUpdate,
    ProcessEmailsResult,
    RebalanceSuggestion,
    TeamWorkload,
    WorkloadResult,
    apply_update,
)
from webhook import notify_assignment
from workload import get_team_workload_distribution, round_half_up, suggest_rebalancing, workload_for

logger = logging.getLogger(__name__)

app = FastAPI(title="Eclipse AI Assistant", version="1.0.0")


def get_llm() -> Optional[OpenAIService]:
    """LLM client, or None when no API key is configured."""
    if not get_openai_api_key():
        return None
    return OpenAIService()


@asynccontextmanager
async def write_lock():
    """Serialize read-modify-write sequences across API instances."""
    max_retries = 10
    for attempt in range(max_retries):
        if await store.acquire_write_lock_async():
            break
        await asyncio.sleep(0.05 * (attempt + 1))
    else:
        raise HTTPException(status_code=503, detail="Could not acquire write lock")
    try:
        yield
    finally:
        await store.release_write_lock_async()


async def _get_or_404(table: str, record_id: str, label: str):
    record = await store.get_record_async(table, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return record


async def _patch(table: str, record_id: str, label: str, patch: BaseModel):
    async with write_lock():
        record = await _get_or_404(table, record_id, label)
        try:
            updated = apply_update(record, patch)
        except ValidationError as e:
            detail = e.errors(include_url=False, include_context=False, include_input=False)
            raise HTTPException(status_code=422, detail=detail) from e
        await store.save_record_async(table, updated)
    return updated


async def _snapshot():
    agents = await store.list_records_async("agents")
    jobs = await store.list_records_async("jobs")
    candidates = await store.list_records_async("candidates")
    return agents, jobs, candidates


# --- Agents ---

@app.post("/agents", response_model=Agent, status_code=201)
async def create_agent(payload: AgentCreate) -> Agent:
    agent = Agent(**payload.model_dump())
    await store.save_record_async("agents", agent)
    return agent


@app.get("/agents", response_model=List[Agent])
async def list_agents() -> List[Agent]:
    agents = await store.list_records_async("agents")
    return sorted(agents, key=lambda a: a.name)


@app.get("/agents/{agent_id}", response_model=Agent)
async def get_agent(agent_id: str) -> Agent:
    return await _get_or_404("agents", agent_id, "Agent")


@app.patch("/agents/{agent_id}", response_model=Agent)
async def update_agent(agent_id: str, patch: AgentUpdate) -> Agent:
    return await _patch("agents", agent_id, "Agent", patch)


# --- Candidates ---

@app.post("/candidates", response_model=Candidate, status_code=201)
async def create_candidate(payload: CandidateCreate) -> Candidate:
    candidate = Candidate(**payload.model_dump())
    await store.save_record_async("candidates", candidate)
    return candidate


@app.get("/candidates", response_model=List[Candidate])
async def list_candidates(status: Optional[str] = None) -> List[Candidate]:
    candidates = await store.list_records_async("candidates")
    if status:
        candidates = [c for c in candidates if c.status == status]
    return candidates


@app.get("/candidates/export", response_class=PlainTextResponse)
async def export_candidates_csv() -> PlainTextResponse:
    candidates = await store.list_records_async("candidates")
    return PlainTextResponse(
        export_candidates(candidates),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="candidates.csv"'},
    )


@app.post("/candidates/import")
async def import_candidates_csv(request: Request) -> dict:
    """Import candidates from a CSV request body laid out like the export."""
    content = (await request.body()).decode("utf-8-sig", errors="replace")
    try:
        candidates = parse_candidates_csv(content)
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid candidates CSV: {e}") from e
    for candidate in candidates:
        await store.save_record_async("candidates", candidate)
    return {"imported": len(candidates)}


@app.get("/candidates/{candidate_id}", response_model=Candidate)
async def get_candidate(candidate_id: str) -> Candidate:
    return await _get_or_404("candidates", candidate_id, "Candidate")


@app.patch("/candidates/{candidate_id}", response_model=Candidate)
async def update_candidate(candidate_id: str, patch: CandidateUpdate) -> Candidate:
    return await _patch("candidates", candidate_id, "Candidate", patch)


@app.post("/candidates/{candidate_id}/summarize", response_model=Candidate)
async def summarize_candidate_cv(candidate_id: str, payload: CVSummaryRequest) -> Candidate:
    """Summarize a CV with the LLM and store it on the candidate."""
    await _get_or_404("candidates", candidate_id, "Candidate")
    llm = get_llm()
    if llm is None:
        raise HTTPException(status_code=503, detail="LLM not configured")
    try:
        summary = await asyncio.to_thread(llm.summarize_cv, payload.cv_text)
    except LLMError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return await _patch("candidates", candidate_id, "Candidate", CandidateUpdate(cv_summary=summary))


@app.get("/candidates/{candidate_id}/compliance", response_model=List[ComplianceDocument])
async def missing_compliance(candidate_id: str, job_id: str) -> List[ComplianceDocument]:
    """Compliance documents the candidate still needs for a job."""
    candidate = await _get_or_404("candidates", candidate_id, "Candidate")
    job = await _get_or_404("jobs", job_id, "Job")
    return get_missing_compliance_documents(candidate, get_required_compliance_documents(job))


# --- Jobs ---

@app.post("/jobs", response_model=Job, status_code=201)
async def create_job(payload: JobCreate) -> Job:
    job = Job(**payload.model_dump())
    await store.save_record_async("jobs", job)
    return job


@app.get("/jobs", response_model=List[Job])
async def list_jobs(status: Optional[str] = None, urgency: Optional[str] = None) -> List[Job]:
    jobs = await store.list_records_async("jobs")
    if status:
        jobs = [j for j in jobs if j.status == status]
    if urgency:
        jobs = [j for j in jobs if j.urgency == urgency]
    return jobs


@app.get("/jobs/export", response_class=PlainTextResponse)
async def export_jobs_csv() -> PlainTextResponse:
    jobs = await store.list_records_async("jobs")
    return PlainTextResponse(
        export_jobs(jobs),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="jobs.csv"'},
    )


@app.post("/jobs/assign-unassigned", response_model=List[Job])
async def assign_unassigned_jobs() -> List[Job]:
    """Assign every open job without an agent, in listing order."""
    async with write_lock():
        agents, jobs, candidates = await _snapshot()
        pending = [j for j in jobs if j.status == "open" and not j.assigned_agent]
        pending_ids = {j.id for j in pending}
        others = [j for j in jobs if j.id not in pending_ids]
        assigned = assign_jobs(pending, agents, others, candidates, policy=get_assignment_policy())
        for job in assigned:
            if job.assigned_agent:
                await store.save_record_async("jobs", job)
    return assigned


@app.get("/jobs/{job_id}", response_model=Job)
async def get_job(job_id: str) -> Job:
    return await _get_or_404("jobs", job_id, "Job")


@app.patch("/jobs/{job_id}", response_model=Job)
async def update_job(job_id: str, patch: JobUpdate) -> Job:
    return await _patch("jobs", job_id, "Job", patch)


@app.post("/jobs/{job_id}/assign", response_model=AssignmentResult)
async def assign_job(job_id: str) -> AssignmentResult:
    """Assign the best available agent. agent is null when nobody is eligible."""
    async with write_lock():
        job = await _get_or_404("jobs", job_id, "Job")
        agents, jobs, candidates = await _snapshot()
        others = [j for j in jobs if j.id != job.id]
        agent = find_best_agent(job, agents, others, candidates)
        if agent is not None:
            job = job.model_copy(update={"assigned_agent": agent.id})
            await store.save_record_async("jobs", job)
    return AssignmentResult(job=job, agent=agent)


@app.get("/jobs/{job_id}/matches", response_model=List[CandidateMatch])
async def list_job_matches(job_id: str) -> List[CandidateMatch]:
    await _get_or_404("jobs", job_id, "Job")
    matches = [m for m in await store.list_records_async("matches") if m.job_id == job_id]
    return sorted(matches, key=lambda m: m.score, reverse=True)


@app.post("/jobs/{job_id}/matches", response_model=List[CandidateMatch])
async def match_job_candidates(job_id: str) -> List[CandidateMatch]:
    """Score active candidates of the job's specialization with the LLM."""
    job = await _get_or_404("jobs", job_id, "Job")
    llm = get_llm()
    if llm is None:
        raise HTTPException(status_code=503, detail="LLM not configured")
    candidates = await store.list_records_async("candidates")
    matches = await asyncio.to_thread(find_matching_candidates, job, candidates, llm)
    for match in matches:
        await store.save_record_async("matches", match)
    return matches


# --- Workload ---

@app.get("/workload/agents/{agent_id}", response_model=WorkloadResult)
async def agent_workload(agent_id: str) -> WorkloadResult:
    agent = await _get_or_404("agents", agent_id, "Agent")
    jobs = await store.list_records_async("jobs")
    candidates = await store.list_records_async("candidates")
    return workload_for(agent, jobs, candidates)


@app.get("/workload/team", response_model=TeamWorkload)
async def team_workload() -> TeamWorkload:
    agents, jobs, candidates = await _snapshot()
    return get_team_workload_distribution([a for a in agents if a.is_active], jobs, candidates)


@app.get("/workload/rebalancing", response_model=List[RebalanceSuggestion])
async def rebalancing_suggestions() -> List[RebalanceSuggestion]:
    agents, jobs, candidates = await _snapshot()
    return suggest_rebalancing([a for a in agents if a.is_active], jobs, candidates)


# --- Job emails ---

@app.post("/emails/fetch", response_model=EmailsAcceptedResponse, status_code=202)
async def fetch_emails() -> EmailsAcceptedResponse:
    """Pull new NHS job emails and queue them for the worker."""
    queued = []
    for email in fetch_new_emails():
        existing = await store.get_record_async("email_jobs", email.id)
        if existing is not None:
            continue
        await store.save_record_async("email_jobs", email)
        await store.enqueue_email_async(email.id)
        queued.append(email.id)
    return EmailsAcceptedResponse(queued=queued)


@app.get("/emails", response_model=List[EmailJob])
async def list_emails(processed: Optional[bool] = None) -> List[EmailJob]:
    emails = await store.list_records_async("email_jobs")
    if processed is not None:
        emails = [e for e in emails if e.processed == processed]
    return emails


@app.post("/emails/process", response_model=ProcessEmailsResult)
async def process_emails() -> ProcessEmailsResult:
    """Process every stored, unprocessed email now instead of waiting for the worker.

    Emails the worker holds the processing lock for are skipped. The write
    lock is held only while results are saved, never across LLM calls.
    """
    emails: List[EmailJob] = []
    try:
        for listed in await store.list_records_async("email_jobs"):
            if listed.processed:
                continue
            if not await store.acquire_processing_lock_async(listed.id):
                logger.info("Skip email %s: already being processed", listed.id)
                continue
            # Re-read under the lock: the worker may have finished it meanwhile
            email = await store.get_record_async("email_jobs", listed.id)
            if email is None or email.processed:
                await store.release_processing_lock_async(listed.id)
                continue
            emails.append(email)

        agents, jobs, candidates = await _snapshot()
        result = await asyncio.to_thread(
            process_email_jobs, emails, agents, jobs, candidates, get_llm(), get_assignment_policy()
        )
        async with write_lock():
            for job in result.jobs:
                await store.save_record_async("jobs", job)
            for match in result.matches:
                await store.save_record_async("matches", match)
            for email in emails:
                if email.processed:
                    await store.save_record_async("email_jobs", email)
    finally:
        for email in emails:
            await store.release_processing_lock_async(email.id)

    agents_by_id = {a.id: a for a in agents}
    jobs_by_id = {j.id: j for j in result.jobs}
    for notification in result.notifications:
        await store.push_notification_async(notification)
        agent = agents_by_id.get(notification.agent_id)
        await asyncio.to_thread(
            notify_assignment, notification, jobs_by_id.get(notification.job_id), agent.name if agent else None
        )
    return result


@app.get("/notifications", response_model=List[AgentNotification])
async def list_notifications(agent_id: Optional[str] = None) -> List[AgentNotification]:
    return await store.list_notifications_async(agent_id)


# --- Eclipse sync ---

@app.post("/eclipse/sync")
async def sync_from_eclipse() -> dict:
    """Import candidates and jobs from the Eclipse platform."""
    client = EclipseAPIService()
    raw_candidates = await asyncio.to_thread(client.get_candidates)
    raw_jobs = await asyncio.to_thread(client.get_jobs)
    imported = {"candidates": 0, "jobs": 0}
    for raw in raw_candidates.get("data", []):
        try:
            candidate = candidate_from_eclipse(raw)
        except (KeyError, ValueError) as e:
            logger.warning("Skipping Eclipse candidate %s: %s", raw.get("id"), e)
            continue
        await store.save_record_async("candidates", candidate)
        imported["candidates"] += 1
    for raw in raw_jobs.get("data", []):
        try:
            job = job_from_eclipse(raw)
        except (KeyError, ValueError) as e:
            logger.warning("Skipping Eclipse job %s: %s", raw.get("id"), e)
            continue
        await store.save_record_async("jobs", job)
        imported["jobs"] += 1
    return imported


# --- Doctor emails ---

def _doctor_service() -> DoctorCommunicationService:
    return DoctorCommunicationService(llm=get_llm())


@app.post("/doctor-emails", response_model=DoctorEmail, status_code=201)
async def draft_doctor_email(payload: DoctorEmailDraftRequest) -> DoctorEmail:
    """Generate an email to a candidate and hold it for agent approval."""
    candidate = await _get_or_404("candidates", payload.candidate_id, "Candidate")
    job = await _get_or_404("jobs", payload.job_id, "Job")
    agent_name = "Your Recruitment Team"
    if job.assigned_agent:
        agent = await store.get_record_async("agents", job.assigned_agent)
        if agent is not None:
            agent_name = agent.name
    email = await asyncio.to_thread(_doctor_service().draft_email, candidate, job, payload.type, agent_name)
    await store.save_record_async("doctor_emails", email)
    return email


@app.get("/doctor-emails", response_model=List[DoctorEmail])
async def list_doctor_emails(status: Optional[str] = None) -> List[DoctorEmail]:
    emails = await store.list_records_async("doctor_emails")
    if status:
        emails = [e for e in emails if e.status == status]
    return emails


@app.patch("/doctor-emails/{email_id}", response_model=DoctorEmail)
async def edit_doctor_email(email_id: str, patch: DoctorEmailUpdate) -> DoctorEmail:
    email = await _get_or_404("doctor_emails", email_id, "Doctor email")
    try:
        email = _doctor_service().edit(email, patch)
    except WorkflowError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await store.save_record_async("doctor_emails", email)
    return email


@app.post("/doctor-emails/{email_id}/approve", response_model=DoctorEmail)
async def approve_doctor_email(email_id: str) -> DoctorEmail:
    email = await _get_or_404("doctor_emails", email_id, "Doctor email")
    candidate = await _get_or_404("candidates", email.candidate_id, "Candidate")
    try:
        email = await asyncio.to_thread(_doctor_service().approve, email, candidate.email)
    except WorkflowError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await store.save_record_async("doctor_emails", email)
    return email


@app.post("/doctor-emails/{email_id}/reject", response_model=DoctorEmail)
async def reject_doctor_email(email_id: str) -> DoctorEmail:
    email = await _get_or_404("doctor_emails", email_id, "Doctor email")
    try:
        email = _doctor_service().reject(email)
    except WorkflowError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await store.save_record_async("doctor_emails", email)
    return email


@app.post("/doctor-emails/{email_id}/reply")
async def draft_doctor_reply(email_id: str, payload: DoctorReplyRequest) -> dict:
    """Draft a reply to a doctor's response to one of our emails."""
    email = await _get_or_404("doctor_emails", email_id, "Doctor email")
    return await asyncio.to_thread(
        _doctor_service().generate_response_to_doctor, email, payload.response_text
    )


# --- Dashboard ---

@app.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats() -> DashboardStats:
    candidates = await store.list_records_async("candidates")
    jobs = await store.list_records_async("jobs")
    matches = await store.list_records_async("matches")
    average = round_half_up(sum(m.score for m in matches) / len(matches)) if matches else 0
    return DashboardStats(
        active_candidates=len([c for c in candidates if c.status == "active"]),
        open_jobs=len([j for j in jobs if j.status == "open"]),
        urgent_jobs=len([j for j in jobs if j.urgency == "high" and j.status == "open"]),
        average_match_score=average,
        compliance_issues=len([
            c for c in candidates
            if not (c.compliance.dbs and c.compliance.right_to_work and c.compliance.registration)
        ]),
    )


@app.get("/health")
def health() -> dict:
    """Health check."""
    return {"status": "ok"}
