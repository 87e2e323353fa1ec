"""Eclipse recruitment-platform API client (OAuth2 client credentials).

When the API cannot be reached the client serves canned data so the
dashboard keeps working in demo environments.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from config import ECLIPSE_BASE_URL, get_eclipse_credentials
from models import GENERAL_SPECIALIZATION, Candidate, Compliance, Job, utc_now_iso

logger = logging.getLogger(__name__)

MOCK_TOKEN = "mock_access_token"

MOCK_DATA: Dict[str, Dict[str, Any]] = {
    "/candidates": {
        "data": [
            {
                "id": "1",
                "name": "Dr. Sarah Johnson",
                "email": "sarah.johnson@email.com",
                "phone": "+44 7700 900123",
                "specialization": "Cardiology",
                "experience": 8,
                "location": "London, UK",
                "lastActive": "2024-01-15T10:30:00Z",
                "status": "active",
                "compliance": {"dbs": True, "rightToWork": True, "registration": True},
            },
            {
                "id": "2",
                "name": "Dr. Michael Chen",
                "email": "michael.chen@email.com",
                "phone": "+44 7700 900124",
                "specialization": "Emergency Medicine",
                "experience": 12,
                "location": "Manchester, UK",
                "lastActive": "2024-01-14T15:45:00Z",
                "status": "active",
                "compliance": {"dbs": True, "rightToWork": True, "registration": False},
            },
        ]
    },
    "/jobs": {
        "data": [
            {
                "id": "1",
                "title": "Consultant Cardiologist",
                "client": "Royal London Hospital",
                "location": "London, UK",
                "type": "permanent",
                "specialization": "Cardiology",
                "salary": "£80,000 - £120,000",
                "description": "Exciting opportunity for an experienced Cardiologist...",
                "requirements": ["GMC Registration", "CCT in Cardiology", "5+ years experience"],
                "postedDate": "2024-01-10T09:00:00Z",
                "status": "open",
                "urgency": "high",
            }
        ]
    },
}


class EclipseAPIService:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: str = ECLIPSE_BASE_URL,
        timeout: float = 10.0,
    ):
        env_id, env_secret = get_eclipse_credentials()
        self.client_id = client_id if client_id is not None else env_id
        self.client_secret = client_secret if client_secret is not None else env_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.access_token: Optional[str] = None

    def authenticate(self) -> None:
        try:
            resp = httpx.post(
                f"{self.base_url}/oauth/token",
                json={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()
            self.access_token = resp.json()["access_token"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning("Eclipse API authentication failed, using mock token: %s", e)
            self.access_token = MOCK_TOKEN

    def _request(self, method: str, endpoint: str, json: Optional[dict] = None, retry_auth: bool = True) -> Any:
        if not self.access_token:
            self.authenticate()
        try:
            resp = httpx.request(
                method,
                f"{self.base_url}{endpoint}",
                headers={"Authorization": f"Bearer {self.access_token}"},
                json=json,
                timeout=self.timeout,
            )
            if resp.status_code == 401 and retry_auth:
                # Token expired: re-authenticate once
                self.authenticate()
                return self._request(method, endpoint, json=json, retry_auth=False)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Eclipse API request %s %s failed, serving mock data: %s", method, endpoint, e)
            return MOCK_DATA.get(endpoint, {"data": []})

    def get_candidates(self) -> Any:
        return self._request("GET", "/candidates")

    def get_jobs(self) -> Any:
        return self._request("GET", "/jobs")

    def get_candidate(self, candidate_id: str) -> Any:
        return self._request("GET", f"/candidates/{candidate_id}")

    def get_job(self, job_id: str) -> Any:
        return self._request("GET", f"/jobs/{job_id}")

    def send_email(self, to: str, subject: str, body: str) -> Any:
        return self._request("POST", "/emails", json={"to": to, "subject": subject, "body": body})


def candidate_from_eclipse(raw: Dict[str, Any]) -> Candidate:
    """Map an Eclipse candidate record (camelCase) to a Candidate."""
    compliance = raw.get("compliance") or {}
    return Candidate(
        id=f"eclipse-cand-{raw['id']}",
        name=raw.get("name") or "",
        email=raw.get("email") or "",
        phone=raw.get("phone") or "",
        specialization=raw.get("specialization") or GENERAL_SPECIALIZATION,
        experience=int(raw.get("experience") or 0),
        location=raw.get("location") or "",
        last_active=raw.get("lastActive") or utc_now_iso(),
        status=raw.get("status") or "active",
        compliance=Compliance(
            dbs=bool(compliance.get("dbs")),
            right_to_work=bool(compliance.get("rightToWork")),
            registration=bool(compliance.get("registration")),
        ),
    )


def job_from_eclipse(raw: Dict[str, Any]) -> Job:
    """Map an Eclipse job record (camelCase) to a Job."""
    return Job(
        id=f"eclipse-job-{raw['id']}",
        title=raw.get("title") or "Untitled Position",
        client=raw.get("client") or "NHS Trust",
        location=raw.get("location") or "UK",
        type=raw.get("type") or "contract",
        specialization=raw.get("specialization") or GENERAL_SPECIALIZATION,
        salary=raw.get("salary") or "Competitive",
        description=raw.get("description") or "",
        requirements=list(raw.get("requirements") or []),
        posted_date=raw.get("postedDate") or utc_now_iso(),
        status=raw.get("status") or "open",
        urgency=raw.get("urgency") or "medium",
        source="eclipse",
    )
