"""CSV export of candidates and jobs, and candidate import."""

import csv
import io
import logging
from typing import List, Sequence

import pandas as pd

from models import Candidate, Compliance, Job, utc_now_iso

logger = logging.getLogger(__name__)

CANDIDATE_HEADERS = [
    "ID", "Name", "Email", "Phone", "Specialization", "Experience",
    "Location", "Status", "DBS", "Right to Work", "Registration", "Last Active",
]

JOB_HEADERS = [
    "ID", "Title", "Client", "Location", "Type", "Specialization",
    "Salary", "Status", "Urgency", "Posted Date",
]

CANDIDATE_STATUSES = ("active", "inactive", "placed")


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _to_csv(rows: List[list], headers: List[str]) -> str:
    df = pd.DataFrame(rows, columns=headers, dtype=str)
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n").rstrip("\n")


def export_candidates(candidates: Sequence[Candidate]) -> str:
    rows = [
        [
            c.id, c.name, c.email, c.phone, c.specialization, str(c.experience),
            c.location, c.status,
            _yes_no(c.compliance.dbs), _yes_no(c.compliance.right_to_work),
            _yes_no(c.compliance.registration), c.last_active,
        ]
        for c in candidates
    ]
    return _to_csv(rows, CANDIDATE_HEADERS)


def export_jobs(jobs: Sequence[Job]) -> str:
    rows = [
        [
            j.id, j.title, j.client, j.location, j.type, j.specialization,
            j.salary, j.status, j.urgency, j.posted_date,
        ]
        for j in jobs
    ]
    return _to_csv(rows, JOB_HEADERS)


def _int_or_zero(value: str) -> int:
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def parse_candidates_csv(content: str) -> List[Candidate]:
    """Parse candidates from CSV laid out like export_candidates (columns by position)."""
    if not content or not content.strip():
        return []
    df = pd.read_csv(io.StringIO(content), dtype=str, keep_default_na=False, skip_blank_lines=True)

    candidates = []
    for index, row in enumerate(df.itertuples(index=False), start=1):
        values = [str(v).strip() for v in row] + [""] * len(CANDIDATE_HEADERS)
        status = values[7].lower()
        candidates.append(
            Candidate(
                id=values[0] or f"imported_{index}",
                name=values[1],
                email=values[2],
                phone=values[3],
                specialization=values[4],
                experience=_int_or_zero(values[5]),
                location=values[6],
                status=status if status in CANDIDATE_STATUSES else "active",
                compliance=Compliance(
                    dbs=values[8].lower() == "yes",
                    right_to_work=values[9].lower() == "yes",
                    registration=values[10].lower() == "yes",
                ),
                last_active=values[11] or utc_now_iso(),
            )
        )
    logger.info("Parsed %d candidates from CSV", len(candidates))
    return candidates
