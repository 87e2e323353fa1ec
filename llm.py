"""OpenAI chat-completions client for CV summaries, job-email parsing and matching."""

import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from circuit_breaker import CircuitBreaker, llm_breaker
from config import OPENAI_BASE_URL, OPENAI_MODEL, OPENAI_TIMEOUT, get_openai_api_key

logger = logging.getLogger(__name__)

RECRUITER_SYSTEM_PROMPT = "You are a medical recruitment expert specializing in candidate assessment."
JOB_EMAIL_SYSTEM_PROMPT = (
    "You are an expert at parsing NHS recruitment emails. Always respond with valid JSON. "
    "Use standard NHS grades like Consultant, ST1-ST8, SHO, FY1-FY2, etc."
)
JSON_SYSTEM_PROMPT = "You are a medical recruitment expert. Always respond with valid JSON."
OUTREACH_SYSTEM_PROMPT = (
    "You are a professional medical recruitment consultant writing personalized outreach emails."
)

MATCH_FALLBACK = {
    "score": 50,
    "reasoning": "Unable to process match analysis",
    "matchedSkills": [],
    "gaps": [],
}


class LLMError(Exception):
    """Raised when the LLM API cannot produce a usable answer."""


class OpenAIService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = OPENAI_MODEL,
        base_url: str = OPENAI_BASE_URL,
        breaker: Optional[CircuitBreaker] = None,
        timeout: float = OPENAI_TIMEOUT,
    ):
        self.api_key = api_key if api_key is not None else get_openai_api_key()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.breaker = breaker or llm_breaker
        self.timeout = timeout

    def _chat(self, system: str, prompt: str, max_tokens: int, temperature: float) -> str:
        """POST one chat completion and return the message content."""
        if not self.api_key:
            raise LLMError("OPENAI_API_KEY not set")
        if not self.breaker.allow():
            raise LLMError("LLM circuit open, skipping call")

        started = time.monotonic()
        try:
            resp = httpx.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            self.breaker.record((time.monotonic() - started) * 1000, ok=False)
            logger.warning("OpenAI API request failed: %s", e)
            raise LLMError(f"OpenAI API error: {e}") from e
        self.breaker.record((time.monotonic() - started) * 1000)
        return content

    def _chat_json(self, system: str, prompt: str, max_tokens: int, temperature: float) -> Dict[str, Any]:
        content = self._chat(system, prompt, max_tokens, temperature)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse JSON response: %s", e)
            raise LLMError("Invalid JSON response from OpenAI") from e
        if not isinstance(data, dict):
            raise LLMError("Expected a JSON object from OpenAI")
        return data

    def summarize_cv(self, cv_text: str) -> str:
        prompt = (
            "Analyze this candidate CV and provide a professional summary in exactly 3 bullet points.\n"
            "Focus on: specialization, key experience, and standout qualifications.\n"
            "Keep each point concise and impactful.\n\n"
            f"CV Content:\n{cv_text}"
        )
        return self._chat(RECRUITER_SYSTEM_PROMPT, prompt, max_tokens=300, temperature=0.3)

    def parse_job_email(self, prompt: str) -> Dict[str, Any]:
        return self._chat_json(JOB_EMAIL_SYSTEM_PROMPT, prompt, max_tokens=800, temperature=0.2)

    def match_candidate_to_job(self, cv_text: str, job_description: str) -> Dict[str, Any]:
        """Return {score, reasoning, matchedSkills, gaps}. Unparseable answers get a neutral score."""
        prompt = (
            "Match this candidate CV to the job description. Provide:\n"
            "1. Match score (0-100)\n"
            "2. Brief reasoning for the score\n"
            "3. List of matched skills/qualifications\n"
            "4. List of potential gaps or missing requirements\n\n"
            f"Candidate CV:\n{cv_text}\n\n"
            f"Job Description:\n{job_description}\n\n"
            "Respond in JSON format:\n"
            '{"score": number, "reasoning": "string", "matchedSkills": ["skill1"], "gaps": ["gap1"]}'
        )
        content = self._chat(JSON_SYSTEM_PROMPT, prompt, max_tokens=500, temperature=0.2)
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("Match response was not JSON, using neutral fallback")
            return dict(MATCH_FALLBACK)
        if not isinstance(data, dict):
            return dict(MATCH_FALLBACK)
        return data

    def generate_outreach_email(
        self, candidate_name: str, job_title: str, client_name: str, job_details: str
    ) -> str:
        prompt = (
            "Write a professional, personalized outreach email to invite a medical professional "
            "to apply for a position.\n\n"
            f"Details:\n- Candidate: {candidate_name}\n- Job Title: {job_title}\n"
            f"- Client: {client_name}\n- Job Details: {job_details}\n\n"
            "The email should be:\n- Professional but warm\n- Highlight why they'd be a good fit\n"
            "- Include next steps\n- Keep it concise (under 200 words)"
        )
        return self._chat(OUTREACH_SYSTEM_PROMPT, prompt, max_tokens=400, temperature=0.7)

    def generate_email(self, prompt: str) -> Dict[str, str]:
        """Return {"subject", "body"} generated from prompt."""
        data = self._chat_json(OUTREACH_SYSTEM_PROMPT, prompt, max_tokens=600, temperature=0.7)
        if not data.get("subject") or not data.get("body"):
            raise LLMError("Generated email is missing subject or body")
        return {"subject": str(data["subject"]), "body": str(data["body"])}

    def generate_response(self, prompt: str) -> Dict[str, Any]:
        """Return {"subject", "body", "confidence"?} for a reply to a doctor."""
        data = self._chat_json(OUTREACH_SYSTEM_PROMPT, prompt, max_tokens=600, temperature=0.5)
        if not data.get("subject") or not data.get("body"):
            raise LLMError("Generated response is missing subject or body")
        return data


def as_str_list(value: Any) -> List[str]:
    """Coerce an LLM-provided list field to a list of strings."""
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]
