"""Tests for best-fit agent selection."""

from agents import assign_jobs, eligible_agents, find_best_agent, location_match, score_agent
from conftest import build_agent, build_candidate, build_job


def test_empty_roster_returns_none():
    assert find_best_agent(build_job(), [], [], []) is None


def test_no_specialization_or_general_returns_none():
    agents = [build_agent(id="a1", specializations=["Radiology"]), build_agent(id="a2", specializations=["Pediatrics"])]
    assert find_best_agent(build_job(specialization="Cardiology"), agents, [], []) is None


def test_inactive_agents_are_skipped():
    agents = [build_agent(id="a1", is_active=False)]
    assert find_best_agent(build_job(), agents, [], []) is None


def test_specialization_match_is_case_insensitive():
    agent = build_agent(id="a1", specializations=["cardiology"])
    assert find_best_agent(build_job(specialization="Cardiology"), [agent], [], []) == agent


def test_general_agent_is_fallback():
    general = build_agent(id="gen", specializations=["General"])
    other = build_agent(id="rad", specializations=["Radiology"])
    best = find_best_agent(build_job(specialization="Dermatology"), [other, general], [], [])
    assert best.id == "gen"


def test_exact_specialization_beats_general():
    general = build_agent(id="gen", specializations=["General"])
    cardio = build_agent(id="cardio", specializations=["Cardiology"])
    job = build_job()
    assert score_agent(cardio, job, [], []) - score_agent(general, job, [], []) == 15
    assert find_best_agent(job, [general, cardio], [], []).id == "cardio"


def test_prefers_lower_workload():
    busy = build_agent(id="busy")
    free = build_agent(id="free")
    jobs = [build_job(id=f"j{i}", assigned_agent="busy") for i in range(4)]
    candidates = [build_candidate(id=f"c{i}", assigned_agent="busy") for i in range(10)]
    new_job = build_job(id="new")
    assert find_best_agent(new_job, [busy, free], jobs, candidates).id == "free"


def test_grade_filter_applied_when_it_matches_someone():
    st = build_agent(id="st", grades=["ST4-ST8"])
    consultant = build_agent(id="cons", grades=["Consultant"])
    job = build_job(grade="Consultant")
    assert [a.id for a in eligible_agents(job, [st, consultant])] == ["cons"]
    assert find_best_agent(job, [st, consultant], [], []).id == "cons"


def test_grade_filter_ignored_when_nobody_matches():
    st = build_agent(id="st", grades=["ST4-ST8"])
    consultant = build_agent(id="cons", grades=["Consultant"])
    job = build_job(grade="FY1")
    assert [a.id for a in eligible_agents(job, [st, consultant])] == ["st", "cons"]


def test_location_is_scored_not_filtered():
    manchester = build_agent(id="man", locations=["Manchester"])
    london = build_agent(id="lon", locations=["London"])
    job = build_job(location="London, UK")
    assert location_match(london, job.location)
    assert not location_match(manchester, job.location)
    assert find_best_agent(job, [manchester, london], [], []).id == "lon"
    # still assignable when no agent covers the location
    assert find_best_agent(job, [manchester], [], []).id == "man"


def test_location_missing_on_job():
    agent = build_agent()
    assert not location_match(agent, None)
    assert not location_match(agent, "")


def test_urgency_bonus_for_high_weighting():
    calm = build_agent(id="calm", preferences={"urgency_weighting": 5})
    keen = build_agent(id="keen", preferences={"urgency_weighting": 7})
    urgent = build_job(urgency="high")
    assert score_agent(keen, urgent, [], []) - score_agent(calm, urgent, [], []) == 10
    assert find_best_agent(urgent, [calm, keen], [], []).id == "keen"
    # no bonus for non-urgent jobs, so the tie keeps input order
    assert find_best_agent(build_job(urgency="medium"), [calm, keen], [], []).id == "calm"


def test_ties_keep_input_order():
    a = build_agent(id="a")
    b = build_agent(id="b")
    assert find_best_agent(build_job(), [a, b], [], []).id == "a"
    assert find_best_agent(build_job(), [b, a], [], []).id == "b"


def test_score_formula():
    agent = build_agent(preferences={"urgency_weighting": 9})
    job = build_job(urgency="high")
    # workload 0 -> 40, exact 30, location 20, urgency 10
    assert score_agent(agent, job, [], []) == 100


class TestAssignJobs:
    def test_incremental_spreads_load(self):
        a = build_agent(id="a")
        b = build_agent(id="b")
        jobs = [build_job(id="j1"), build_job(id="j2")]
        assigned = assign_jobs(jobs, [a, b], [], [], policy="incremental")
        assert [j.assigned_agent for j in assigned] == ["a", "b"]

    def test_batch_scores_against_snapshot(self):
        a = build_agent(id="a")
        b = build_agent(id="b")
        jobs = [build_job(id="j1"), build_job(id="j2")]
        assigned = assign_jobs(jobs, [a, b], [], [], policy="batch")
        assert [j.assigned_agent for j in assigned] == ["a", "a"]

    def test_unassignable_job_left_unset(self):
        jobs = [build_job(id="j1", specialization="Dermatology")]
        assigned = assign_jobs(jobs, [build_agent()], [], [])
        assert assigned[0].assigned_agent is None

    def test_inputs_not_mutated(self):
        job = build_job(id="j1")
        assign_jobs([job], [build_agent()], [], [])
        assert job.assigned_agent is None
