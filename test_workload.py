"""Tests for agent workload scoring, team distribution and rebalancing."""

import pytest

from conftest import build_agent, build_candidate, build_job
from workload import (
    calculate_workload,
    get_team_workload_distribution,
    round_half_up,
    suggest_rebalancing,
    workload_status,
)


def open_jobs(n, agent_id="agent-1", urgency="medium", start=0, **kwargs):
    return [
        build_job(id=f"job-{agent_id}-{start + i}", title=f"Job {start + i}", assigned_agent=agent_id,
                  urgency=urgency, **kwargs)
        for i in range(n)
    ]


def active_candidates(n, agent_id="agent-1"):
    return [build_candidate(id=f"cand-{agent_id}-{i}", assigned_agent=agent_id) for i in range(n)]


class TestCalculateWorkload:
    def test_reference_scenario(self):
        agent = build_agent()
        result = calculate_workload(agent, open_jobs(5), active_candidates(10))
        assert result.breakdown.active_jobs == 50
        assert result.breakdown.candidates_managed == 20
        assert result.breakdown.urgent_tasks == 0
        assert result.breakdown.response_time == 0
        assert result.total_score == 17
        assert result.status == "available"

    def test_reference_scenario_with_urgent_jobs(self):
        agent = build_agent()
        jobs = open_jobs(2) + open_jobs(3, urgency="high", start=2)
        result = calculate_workload(agent, jobs, active_candidates(10))
        assert result.breakdown.urgent_tasks == 60
        assert result.total_score == 35
        assert result.status == "available"

    def test_only_open_jobs_and_active_candidates_count(self):
        agent = build_agent()
        jobs = open_jobs(2) + [build_job(id="closed", status="closed", urgency="high", assigned_agent="agent-1")]
        candidates = active_candidates(5) + [build_candidate(id="placed", status="placed")]
        result = calculate_workload(agent, jobs, candidates)
        assert result.breakdown.active_jobs == 20
        assert result.breakdown.candidates_managed == 10
        assert result.breakdown.urgent_tasks == 0

    def test_sub_scores_are_capped(self):
        agent = build_agent(metrics={"avg_response_time": 48})
        result = calculate_workload(agent, open_jobs(30, urgency="high"), active_candidates(80))
        assert result.breakdown.active_jobs == 100
        assert result.breakdown.candidates_managed == 100
        assert result.breakdown.urgent_tasks == 100
        assert result.breakdown.response_time == 100
        # capacity weight is not part of the composite
        assert result.total_score == 90
        assert result.status == "overloaded"

    def test_slow_response_raises_score(self):
        fast = calculate_workload(build_agent(metrics={"avg_response_time": 0}), [], [])
        slow = calculate_workload(build_agent(metrics={"avg_response_time": 12}), [], [])
        assert slow.breakdown.response_time == 50
        assert slow.total_score > fast.total_score

    def test_zero_capacity_counts_as_full(self):
        agent = build_agent(
            is_active=False,
            capacity={"max_active_jobs": 0, "max_candidates": 0, "hours_per_week": 0},
        )
        result = calculate_workload(agent, [], [])
        assert result.breakdown.active_jobs == 100
        assert result.breakdown.candidates_managed == 100
        assert result.total_score == 45

    def test_urgent_jobs_never_lower_score(self):
        agent = build_agent()
        previous = -1
        for n in range(0, 8):
            score = calculate_workload(agent, open_jobs(n, urgency="high"), []).total_score
            assert score >= previous
            previous = score

    def test_score_within_bounds(self):
        agent = build_agent(capacity={"max_active_jobs": 1, "max_candidates": 1, "hours_per_week": 1},
                            metrics={"avg_response_time": 1000})
        result = calculate_workload(agent, open_jobs(50, urgency="high"), active_candidates(50))
        assert 0 <= result.total_score <= 100

    def test_recommendation_names_agent(self):
        result = calculate_workload(build_agent(name="Emma Thompson"), [], [])
        assert result.recommendation == "Emma Thompson has capacity for new assignments and urgent tasks."


class TestStatusBuckets:
    @pytest.mark.parametrize(
        "score,status",
        [(0, "available"), (39, "available"), (40, "moderate"), (69, "moderate"),
         (70, "busy"), (89, "busy"), (90, "overloaded"), (100, "overloaded")],
    )
    def test_thresholds(self, score, status):
        assert workload_status(score) == status

    def test_every_score_has_one_bucket(self):
        for score in range(0, 101):
            assert workload_status(score) in {"available", "moderate", "busy", "overloaded"}


def test_round_half_up():
    assert round_half_up(16.5) == 17
    assert round_half_up(34.5) == 35
    assert round_half_up(12.49) == 12


class TestTeamDistribution:
    def test_aggregates(self):
        a1 = build_agent(id="a1", name="A")
        a2 = build_agent(id="a2", name="B")
        jobs = open_jobs(5, agent_id="a1") + open_jobs(1, agent_id="a2")
        candidates = active_candidates(10, agent_id="a1")
        team = get_team_workload_distribution([a1, a2], jobs, candidates)

        assert [d.agent.id for d in team.distribution] == ["a1", "a2"]
        assert team.distribution[0].workload.total_score == 17
        assert team.distribution[1].workload.total_score == 3
        assert team.team_stats.average_workload == 10
        assert team.team_stats.available_agents == 2
        assert team.team_stats.overloaded_agents == 0
        assert team.team_stats.total_active_jobs == 6
        assert team.team_stats.total_active_candidates == 10

    def test_empty_team(self):
        team = get_team_workload_distribution([], [], [])
        assert team.distribution == []
        assert team.team_stats.average_workload == 0


class TestRebalancing:
    def overloaded_agent(self):
        return build_agent(
            id="busy",
            name="Busy Agent",
            capacity={"max_active_jobs": 3, "max_candidates": 1, "hours_per_week": 40},
            metrics={"avg_response_time": 24},
        )

    def test_caps_at_two_suggestions_per_agent(self):
        busy = self.overloaded_agent()
        helper = build_agent(id="helper", name="General Agent", specializations=["General"])
        jobs = open_jobs(3, agent_id="busy")
        # 3 urgent jobs in another specialization push the score over 90
        jobs += open_jobs(5, agent_id="busy", urgency="high", start=3, specialization="Radiology")
        candidates = active_candidates(2, agent_id="busy")

        suggestions = suggest_rebalancing([busy, helper], jobs, candidates)

        assert len(suggestions) == 2
        for s in suggestions:
            assert s.type == "redistribute_job"
            assert s.from_agent == "Busy Agent"
            assert s.to_agent == "General Agent"
        assert [s.item for s in suggestions] == ["Job 0", "Job 1"]
        assert suggestions[0].reason.startswith("Rebalance workload - Busy Agent is overloaded (")

    def test_urgent_jobs_are_not_moved(self):
        busy = self.overloaded_agent()
        helper = build_agent(id="helper", name="Helper", specializations=["General"])
        jobs = open_jobs(8, agent_id="busy", urgency="high")
        suggestions = suggest_rebalancing([busy, helper], jobs, active_candidates(2, agent_id="busy"))
        assert suggestions == []

    def test_no_suitable_target(self):
        busy = self.overloaded_agent()
        other = build_agent(id="other", name="Radiologist", specializations=["Radiology"])
        jobs = open_jobs(3, agent_id="busy") + open_jobs(5, agent_id="busy", urgency="high", start=3)
        suggestions = suggest_rebalancing([busy, other], jobs, active_candidates(2, agent_id="busy"))
        assert suggestions == []

    def test_serializes_from_and_to(self):
        busy = self.overloaded_agent()
        helper = build_agent(id="helper", name="Helper", specializations=["Cardiology"])
        jobs = open_jobs(1, agent_id="busy") + open_jobs(5, agent_id="busy", urgency="high", start=1)
        suggestions = suggest_rebalancing([busy, helper], jobs, active_candidates(2, agent_id="busy"))
        dumped = suggestions[0].model_dump(by_alias=True)
        assert dumped["from"] == "Busy Agent"
        assert dumped["to"] == "Helper"
