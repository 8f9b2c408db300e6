"""HTTP-level tests for the CuraGo API with Gemini offline."""
import logging
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from curago_service import main
from curago_service.rate_limiter import RateLimiter, rate_limit_manager


@pytest.fixture
def client(monkeypatch):
    """Test client with Gemini offline and empty caches and rate limits."""
    monkeypatch.setattr(main.gateway, "client", None)
    main.specialty_cache.clear()
    main.chat_cache.clear()
    rate_limit_manager.reset()
    yield TestClient(main.app)
    rate_limit_manager.reset()


class TestSymptomAnalysis:
    """Test the symptom analysis endpoints."""

    def test_analysis_offline(self, client):
        """Test symptom analysis with local fallbacks."""
        response = client.post("/api/symptom-analysis", json={"symptoms": ["fever", "nausea"]})

        assert response.status_code == 200
        body = response.json()
        assert body["symptoms"] == ["fever", "nausea"]
        assert len(body["relevantSpecialties"]) >= 1
        assert len(body["recommendedDoctors"]) >= 1
        assert body["urgencyLevel"] == "moderate"
        doctor = body["recommendedDoctors"][0]
        assert "matchDetails" in doctor
        assert "matchScore" not in doctor
        assert "X-RateLimit-Limit" in response.headers

    def test_missing_symptoms(self, client):
        """Test that a missing symptom list is a 400."""
        response = client.post("/api/symptom-analysis", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
        assert "symptoms" in response.json()["details"]

    def test_blank_symptoms(self, client):
        """Test that blank symptoms are a 400."""
        assert client.post("/api/symptom-analysis", json={"symptoms": []}).status_code == 400
        assert client.post("/api/symptom-analysis", json={"symptoms": ["  "]}).status_code == 400

    def test_ai_analysis(self, client):
        """Test that the AI analysis endpoint includes the read-out."""
        response = client.post("/api/ai-symptom-analysis", json={"symptoms": ["chest pain"]})

        assert response.status_code == 200
        ai = response.json()["aiAnalysis"]
        assert ai["urgencyLevel"] == "urgent"
        assert ai["source"] == "heuristic"
        assert ai["recommendedSpecialties"][0] == "Cardiologist"

    def test_medical_report(self, client):
        """Test the medical report endpoint."""
        response = client.post("/api/medical-report", json={"symptoms": ["cough", "fever"]})

        assert response.status_code == 200
        body = response.json()
        assert body["reportId"].startswith("MR-")
        assert body["summary"].startswith("Medical Report Summary")
        assert 1 <= len(body["recommendedDoctors"]) <= 5
        assert body["preventionTips"]


class TestChat:
    """Test the /chat endpoint."""

    def test_first_symptom_turn(self, client):
        """Test the first turn that mentions a symptom."""
        response = client.post("/chat", json={"message": "I have a fever"})

        assert response.status_code == 200
        body = response.json()
        assert body["detectedSymptoms"] == ["fever"]
        assert body["collectingSymptoms"] is True
        assert body["stage"] == "collecting"
        assert body["chatHistory"][0]["role"] == "model"
        assert len(body["chatHistory"]) == 3

    def test_report_turn(self, client):
        """Test the turn that closes collection and returns the report."""
        response = client.post("/chat", json={
            "message": "no, that's all",
            "detectedSymptoms": ["fever", "cough"],
            "collectingSymptoms": True,
        })

        body = response.json()
        assert response.status_code == 200
        assert body["recommendDoctors"] is True
        assert body["showDoctorRecommendations"] is True
        assert body["stage"] == "complete"
        assert body["medicalReport"].startswith("Medical Report Summary")
        assert body["report"]["symptoms"] == ["fever", "cough"]

    def test_degraded_chat_is_503(self, client):
        """Test that the degraded apology is served with a 503."""
        response = client.post("/chat", json={"message": "Tell me about vitamins"})

        assert response.status_code == 503
        assert response.json()["source"] == "fallback"

    def test_empty_message(self, client):
        """Test that an empty message is a 400."""
        assert client.post("/chat", json={"message": "   "}).status_code == 400
        assert client.post("/chat", json={}).status_code == 400


class TestDetectSymptoms:
    """Test the /api/detect-symptoms endpoint."""

    def test_detects_keywords(self, client):
        """Test keyword detection over HTTP."""
        response = client.post("/api/detect-symptoms", json={"message": "Bad headache and chest pain"})

        assert response.status_code == 200
        assert response.json() == {
            "containsSymptoms": True,
            "detectedSymptoms": ["headache", "chest pain"],
        }

    def test_rate_limited(self, client):
        """Test the 429 once the endpoint limit is used up."""
        rate_limit_manager.limiters["detect-symptoms"] = RateLimiter(max_requests=1)

        assert client.post("/api/detect-symptoms", json={"message": "hello"}).status_code == 200
        response = client.post("/api/detect-symptoms", json={"message": "hello"})
        assert response.status_code == 429
        assert "Retry-After" in response.headers


class TestDirectoryAndHealth:
    """Test health, index and doctor directory endpoints."""

    def test_health(self, client):
        """Test the health payload."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["gemini"] is False
        assert "environment" in body

    def test_request_id_echoed(self, client):
        """Test that the X-Request-ID header is echoed."""
        response = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    def test_index_lists_endpoints(self, client):
        """Test that the index lists the chat endpoint."""
        assert "/chat" in client.get("/").json()["endpoints"]

    def test_doctor_directory(self, client):
        """Test the directory and its specialty filter."""
        assert client.get("/api/doctors").json()["count"] == 10
        cardiologists = client.get("/api/doctors", params={"specialty": "cardiologist"}).json()
        assert [d["name"] for d in cardiologists["doctors"]] == ["Dr. Michael Chen"]

    def test_doctor_profile(self, client):
        """Test a single profile and the 404 for unknown IDs."""
        assert client.get("/api/doctors/3").json()["specialty"] == "Dermatologist"
        assert client.get("/api/doctors/404").status_code == 404


class TestUnhandledErrors:
    """Test the catch-all 500 handler."""

    def test_unexpected_error_is_500_and_logged(self, client, monkeypatch, caplog):
        """Test that an unexpected error returns the generic 500 body and is logged with its request ID."""
        monkeypatch.setattr(main.analyzer, "analyze", AsyncMock(side_effect=RuntimeError("boom")))
        client = TestClient(main.app, raise_server_exceptions=False)

        with caplog.at_level(logging.INFO):
            response = client.post(
                "/api/symptom-analysis",
                json={"symptoms": ["fever"]},
                headers={"X-Request-ID": "req-500"},
            )

        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
        }
        assert response.headers["X-Request-ID"] == "req-500"

        access = [r for r in caplog.records if r.name == "curago.http"]
        assert access[-1].levelno == logging.ERROR
        assert access[-1].extra_data["error"] == "RuntimeError: boom"
        handled = [r for r in caplog.records if r.getMessage() == "Unhandled error"]
        assert handled and handled[-1].exc_info[1].args == ("boom",)
