from conftest import build_candidate, build_job
from csv_io import CANDIDATE_HEADERS, export_candidates, export_jobs, parse_candidates_csv
from models import Compliance

CANDIDATE_HEADER_LINE = ",".join(f'"{h}"' for h in CANDIDATE_HEADERS)


def test_export_candidates():
    candidate = build_candidate(
        id="c1",
        name="Dr. Smith, Jr.",
        phone="+44 7700 900123",
        location="London, UK",
        compliance=Compliance(dbs=True, right_to_work=False, registration=True),
        last_active="2024-01-15T10:30:00Z",
    )
    lines = export_candidates([candidate]).split("\n")
    assert lines[0] == CANDIDATE_HEADER_LINE
    assert lines[1] == (
        '"c1","Dr. Smith, Jr.","sarah.johnson@email.com","+44 7700 900123","Cardiology","8",'
        '"London, UK","active","Yes","No","Yes","2024-01-15T10:30:00Z"'
    )


def test_export_empty_is_header_only():
    assert export_candidates([]) == CANDIDATE_HEADER_LINE


def test_export_jobs():
    job = build_job(id="j1", salary="£80,000", posted_date="2024-01-10T09:00:00Z", urgency="high")
    lines = export_jobs([job]).split("\n")
    assert lines[0].startswith('"ID","Title","Client"')
    assert lines[1] == (
        '"j1","Consultant Cardiologist","Royal London Hospital","London, UK","contract",'
        '"Cardiology","£80,000","open","high","2024-01-10T09:00:00Z"'
    )


def test_parse_reads_export_layout():
    content = (
        CANDIDATE_HEADER_LINE + "\n"
        '"c1","Dr. Smith, Jr.","smith@nhs.net","","Cardiology","8","London, UK","placed",'
        '"Yes","no","YES","2024-01-15T10:30:00Z"\n'
    )
    [candidate] = parse_candidates_csv(content)
    assert candidate.id == "c1"
    assert candidate.name == "Dr. Smith, Jr."
    assert candidate.location == "London, UK"
    assert candidate.status == "placed"
    assert candidate.experience == 8
    assert candidate.compliance == Compliance(dbs=True, right_to_work=False, registration=True)
    assert candidate.last_active == "2024-01-15T10:30:00Z"


def test_parse_fills_defaults():
    content = (
        CANDIDATE_HEADER_LINE + "\n"
        ',Dr. A,a@nhs.net,,Radiology,lots,Leeds,retired,No,No,No,\n'
        ',Dr. B,b@nhs.net,,Radiology,3.0,Leeds,inactive,No,No,No,\n'
    )
    first, second = parse_candidates_csv(content)
    assert first.id == "imported_1"
    assert first.experience == 0
    assert first.status == "active"
    assert first.last_active
    assert second.id == "imported_2"
    assert second.experience == 3
    assert second.status == "inactive"


def test_parse_empty():
    assert parse_candidates_csv("") == []
    assert parse_candidates_csv(CANDIDATE_HEADER_LINE + "\n") == []
