# agents.py

import logging
from typing import List, Optional, Sequence

from models import GENERAL_SPECIALIZATION, Agent, Candidate, Job
from workload import workload_for

logger = logging.getLogger(__name__)

AVAILABILITY_WEIGHT = 0.4
EXACT_SPECIALIZATION_POINTS = 30
GENERAL_SPECIALIZATION_POINTS = 15
LOCATION_MATCH_POINTS = 20
LOCATION_MISS_POINTS = 10
URGENCY_BONUS_POINTS = 10
URGENCY_WEIGHTING_THRESHOLD = 7


def _has_specialization(agent: Agent, specialization: str) -> bool:
    wanted = (specialization or "").lower()
    return any(spec.lower() == wanted for spec in agent.specializations)


def _is_general(agent: Agent) -> bool:
    return _has_specialization(agent, GENERAL_SPECIALIZATION)


def location_match(agent: Agent, job_location: Optional[str]) -> bool:
    """True when one of the agent's locations appears inside the job location."""
    if not job_location:
        return False
    where = job_location.lower()
    return any(loc and loc.lower() in where for loc in agent.locations)


def eligible_agents(job: Job, agents: Sequence[Agent]) -> List[Agent]:
    """Active agents covering the job's specialization (or General), narrowed by grade if possible."""
    eligible = [
        a for a in agents
        if a.is_active and (_has_specialization(a, job.specialization) or _is_general(a))
    ]
    if job.grade:
        graded = [a for a in eligible if job.grade in a.grades]
        if graded:
            eligible = graded
    return eligible


def score_agent(
    agent: Agent,
    job: Job,
    all_jobs: Sequence[Job],
    all_candidates: Sequence[Candidate],
) -> float:
    workload = workload_for(agent, all_jobs, all_candidates)
    score = (100 - workload.total_score) * AVAILABILITY_WEIGHT
    if _has_specialization(agent, job.specialization):
        score += EXACT_SPECIALIZATION_POINTS
    else:
        score += GENERAL_SPECIALIZATION_POINTS
    score += LOCATION_MATCH_POINTS if location_match(agent, job.location) else LOCATION_MISS_POINTS
    if job.urgency == "high" and agent.preferences.urgency_weighting >= URGENCY_WEIGHTING_THRESHOLD:
        score += URGENCY_BONUS_POINTS
    return score


def find_best_agent(
    job: Job,
    agents: Sequence[Agent],
    all_jobs: Sequence[Job],
    all_candidates: Sequence[Candidate],
) -> Optional[Agent]:
    """Pick the best agent for job, or None if nobody is eligible. Ties go to the earlier agent."""
    best_agent = None
    best_score = -1.0

    for agent in eligible_agents(job, agents):
        score = score_agent(agent, job, all_jobs, all_candidates)
        if score > best_score:
            best_score = score
            best_agent = agent

    if best_agent is None:
        logger.info("No eligible agent for job %s (%s)", job.id, job.specialization)
    return best_agent


def assign_jobs(
    jobs: Sequence[Job],
    agents: Sequence[Agent],
    all_jobs: Sequence[Job],
    all_candidates: Sequence[Candidate],
    policy: str = "incremental",
) -> List[Job]:
    """Assign each new job to its best agent and return updated copies.

    With policy "incremental" each assignment counts towards the load seen by
    the next job; with "batch" all jobs are scored against all_jobs as given.
    Jobs with no eligible agent keep assigned_agent unset.
    """
    working = list(all_jobs)
    assigned = []
    for job in jobs:
        agent = find_best_agent(job, agents, working, all_candidates)
        if agent is not None:
            job = job.model_copy(update={"assigned_agent": agent.id})
            logger.info("Assigned job %s to agent %s", job.id, agent.id)
        if policy == "incremental":
            working.append(job)
        assigned.append(job)
    return assigned
