import httpx
import pytest

from eclipse_api import MOCK_DATA, MOCK_TOKEN, EclipseAPIService, candidate_from_eclipse, job_from_eclipse

BASE = "https://eclipse.test"


def response(status, url, json=None):
    return httpx.Response(status, json=json, request=httpx.Request("GET", url))


@pytest.fixture
def service():
    return EclipseAPIService(client_id="id", client_secret="secret", base_url=BASE)


def test_authenticate_and_fetch(monkeypatch, service):
    def fake_post(url, **kwargs):
        assert url == f"{BASE}/oauth/token"
        assert kwargs["json"]["grant_type"] == "client_credentials"
        return response(200, url, {"access_token": "tok-1"})

    seen = []

    def fake_request(method, url, **kwargs):
        seen.append(kwargs["headers"]["Authorization"])
        return response(200, url, {"data": [{"id": "9"}]})

    monkeypatch.setattr(httpx, "post", fake_post)
    monkeypatch.setattr(httpx, "request", fake_request)
    assert service.get_candidates() == {"data": [{"id": "9"}]}
    assert seen == ["Bearer tok-1"]


def test_reauthenticates_once_on_401(monkeypatch, service):
    tokens = iter(["old", "new"])
    monkeypatch.setattr(httpx, "post", lambda url, **k: response(200, url, {"access_token": next(tokens)}))
    seen = []

    def fake_request(method, url, **kwargs):
        seen.append(kwargs["headers"]["Authorization"])
        if kwargs["headers"]["Authorization"] == "Bearer old":
            return response(401, url)
        return response(200, url, {"data": []})

    monkeypatch.setattr(httpx, "request", fake_request)
    assert service.get_jobs() == {"data": []}
    assert seen == ["Bearer old", "Bearer new"]


def test_unreachable_api_serves_mock_data(monkeypatch, service):
    def down(*args, **kwargs):
        raise httpx.ConnectError("down")

    monkeypatch.setattr(httpx, "post", down)
    monkeypatch.setattr(httpx, "request", down)
    assert service.get_candidates() == MOCK_DATA["/candidates"]
    assert service.access_token == MOCK_TOKEN
    assert service.get_candidate("1") == {"data": []}


def test_candidate_mapping():
    candidate = candidate_from_eclipse(MOCK_DATA["/candidates"]["data"][1])
    assert candidate.id == "eclipse-cand-2"
    assert candidate.specialization == "Emergency Medicine"
    assert candidate.experience == 12
    assert candidate.last_active == "2024-01-14T15:45:00Z"
    assert candidate.compliance.right_to_work
    assert not candidate.compliance.registration


def test_job_mapping():
    job = job_from_eclipse(MOCK_DATA["/jobs"]["data"][0])
    assert job.id == "eclipse-job-1"
    assert job.source == "eclipse"
    assert job.urgency == "high"
    assert job.type == "permanent"
    assert job.requirements == ["GMC Registration", "CCT in Cardiology", "5+ years experience"]
    assert job.posted_date == "2024-01-10T09:00:00Z"


def test_get_job_and_send_email(monkeypatch, service):
    monkeypatch.setattr(httpx, "post", lambda url, **k: response(200, url, {"access_token": "tok"}))
    seen = []

    def fake_request(method, url, **kwargs):
        seen.append((method, url, kwargs["json"]))
        return response(200, url, {"ok": True})

    monkeypatch.setattr(httpx, "request", fake_request)
    service.get_job("7")
    service.send_email("doctor@nhs.net", "Role", "Body")
    assert seen == [
        ("GET", f"{BASE}/jobs/7", None),
        ("POST", f"{BASE}/emails", {"to": "doctor@nhs.net", "subject": "Role", "body": "Body"}),
    ]
