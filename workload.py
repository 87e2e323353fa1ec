"""Agent workload scoring, team distribution and rebalancing suggestions.

All functions are pure: callers pass snapshots of agents, jobs and candidates
and get fresh results back. Nothing is cached between calls.
"""

import math
from typing import Dict, List, Sequence, Tuple

from models import (
    GENERAL_SPECIALIZATION,
    Agent,
    AgentWorkload,
    Candidate,
    Job,
    RebalanceSuggestion,
    TeamStats,
    TeamWorkload,
    WorkloadBreakdown,
    WorkloadResult,
    WorkloadStatus,
)

# Percent weights of the composite score. "capacity" is declared but not part
# of the composite, so realized weights sum to 90.
WEIGHTS: Dict[str, int] = {
    "active_jobs": 25,
    "candidates_managed": 20,
    "urgent_tasks": 30,
    "response_time": 15,
    "capacity": 10,
}

URGENT_JOB_POINTS = 20
RESPONSE_TIME_SATURATION_HOURS = 24
MAX_REBALANCE_JOBS_PER_AGENT = 2

# (min score, status), checked top-down
STATUS_THRESHOLDS: Tuple[Tuple[int, WorkloadStatus], ...] = (
    (90, "overloaded"),
    (70, "busy"),
    (40, "moderate"),
    (0, "available"),
)

RECOMMENDATIONS: Dict[str, str] = {
    "overloaded": "{name} is overloaded. Consider redistributing urgent tasks or reducing new assignments.",
    "busy": "{name} is at high capacity. Only assign urgent or high-priority tasks.",
    "moderate": "{name} has moderate workload. Can take on new assignments.",
    "available": "{name} has capacity for new assignments and urgent tasks.",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _ratio_score(count: int, capacity: int) -> float:
    """Percent of capacity used, capped at 100. Zero capacity counts as full."""
    if capacity <= 0:
        return 100.0
    return min(count * 100 / capacity, 100.0)


def open_jobs(jobs: Sequence[Job]) -> List[Job]:
    return [j for j in jobs if j.status == "open"]


def active_candidates(candidates: Sequence[Candidate]) -> List[Candidate]:
    return [c for c in candidates if c.status == "active"]


def jobs_for(agent: Agent, all_jobs: Sequence[Job]) -> List[Job]:
    return [j for j in all_jobs if j.assigned_agent == agent.id]


def candidates_for(agent: Agent, all_candidates: Sequence[Candidate]) -> List[Candidate]:
    return [c for c in all_candidates if c.assigned_agent == agent.id]


def workload_status(score: int) -> WorkloadStatus:
    for threshold, status in STATUS_THRESHOLDS:
        if score >= threshold:
            return status
    return "available"


def calculate_workload(
    agent: Agent,
    assigned_jobs: Sequence[Job],
    managed_candidates: Sequence[Candidate],
) -> WorkloadResult:
    """Score one agent's workload from 0 to 100.

    assigned_jobs and managed_candidates must already be limited to this agent.
    """
    open_count = len(open_jobs(assigned_jobs))
    urgent_count = len([j for j in assigned_jobs if j.urgency == "high" and j.status == "open"])

    active_jobs_score = _ratio_score(open_count, agent.capacity.max_active_jobs)
    candidates_score = _ratio_score(
        len(active_candidates(managed_candidates)), agent.capacity.max_candidates
    )
    urgent_score = float(min(urgent_count * URGENT_JOB_POINTS, 100))
    # Slower responders score higher
    response_time_score = min(
        agent.metrics.avg_response_time * 100 / RESPONSE_TIME_SATURATION_HOURS, 100.0
    )

    total = round_half_up(
        active_jobs_score * WEIGHTS["active_jobs"] / 100
        + candidates_score * WEIGHTS["candidates_managed"] / 100
        + urgent_score * WEIGHTS["urgent_tasks"] / 100
        + response_time_score * WEIGHTS["response_time"] / 100
    )
    total = max(0, min(100, total))
    status = workload_status(total)

    return WorkloadResult(
        total_score=total,
        breakdown=WorkloadBreakdown(
            active_jobs=round_half_up(active_jobs_score),
            candidates_managed=round_half_up(candidates_score),
            urgent_tasks=round_half_up(urgent_score),
            response_time=round_half_up(response_time_score),
        ),
        status=status,
        recommendation=RECOMMENDATIONS[status].format(name=agent.name),
    )


def workload_for(
    agent: Agent, all_jobs: Sequence[Job], all_candidates: Sequence[Candidate]
) -> WorkloadResult:
    """Workload of agent computed from the global job and candidate lists."""
    return calculate_workload(agent, jobs_for(agent, all_jobs), candidates_for(agent, all_candidates))


def get_team_workload_distribution(
    agents: Sequence[Agent],
    all_jobs: Sequence[Job],
    all_candidates: Sequence[Candidate],
) -> TeamWorkload:
    distribution = []
    for agent in agents:
        agent_jobs = jobs_for(agent, all_jobs)
        agent_candidates = candidates_for(agent, all_candidates)
        distribution.append(
            AgentWorkload(
                agent=agent,
                workload=calculate_workload(agent, agent_jobs, agent_candidates),
                active_jobs=len(open_jobs(agent_jobs)),
                active_candidates=len(active_candidates(agent_candidates)),
            )
        )

    average = 0
    if distribution:
        average = round_half_up(sum(d.workload.total_score for d in distribution) / len(distribution))

    team_stats = TeamStats(
        average_workload=average,
        overloaded_agents=sum(1 for d in distribution if d.workload.status == "overloaded"),
        available_agents=sum(1 for d in distribution if d.workload.status == "available"),
        total_active_jobs=sum(d.active_jobs for d in distribution),
        total_active_candidates=sum(d.active_candidates for d in distribution),
    )
    return TeamWorkload(distribution=distribution, team_stats=team_stats)


def suggest_rebalancing(
    agents: Sequence[Agent],
    all_jobs: Sequence[Job],
    all_candidates: Sequence[Candidate],
) -> List[RebalanceSuggestion]:
    """Propose moving non-urgent open jobs from overloaded agents to available ones."""
    distribution = get_team_workload_distribution(agents, all_jobs, all_candidates).distribution
    overloaded = [d for d in distribution if d.workload.status == "overloaded"]
    available = [d for d in distribution if d.workload.status == "available"]

    suggestions: List[RebalanceSuggestion] = []
    for busy in overloaded:
        movable = [
            j for j in all_jobs
            if j.assigned_agent == busy.agent.id and j.status == "open" and j.urgency != "high"
        ]
        for job in movable[:MAX_REBALANCE_JOBS_PER_AGENT]:
            target = next(
                (
                    d for d in available
                    if job.specialization in d.agent.specializations
                    or GENERAL_SPECIALIZATION in d.agent.specializations
                ),
                None,
            )
            if target is None:
                continue
            suggestions.append(
                RebalanceSuggestion(
                    type="redistribute_job",
                    from_agent=busy.agent.name,
                    to_agent=target.agent.name,
                    item=job.title,
                    reason=(
                        f"Rebalance workload - {busy.agent.name} is overloaded "
                        f"({busy.workload.total_score}%)"
                    ),
                )
            )
    return suggestions
