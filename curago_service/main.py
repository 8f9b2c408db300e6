"""
CuraGo Triage Service - FastAPI backend

Symptom triage, specialty classification and doctor recommendations.

Architecture:
  - Gemini (Flash, then Pro) = text generation behind GeminiGateway
  - Local tables and keyword heuristics = fallback for every Gemini-backed path
"""
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .analysis import SymptomAnalyzer
from .chat import ChatService
from .config import get_settings
from .doctors import DOCTORS, find_doctor, to_recommendation
from .gemini_gateway import get_gateway
from .models import (
    AISymptomAnalysisResponse,
    ChatRequest,
    ChatResponse,
    DetectSymptomsRequest,
    DetectSymptomsResponse,
    MedicalReportResponse,
    SymptomAnalysisRequest,
    SymptomAnalysisResponse,
)
from .rate_limiter import check_rate_limit, client_identifier
from .report import build_medical_report
from .response_cache import ResponseCache
from .specialties import SpecialtyClassifier
from .structured_logging import (
    StructuredLogger,
    get_request_id,
    log_request,
    set_request_id,
    setup_logging,
)
from .triage import REPORT_DOCTOR_LIMIT, TriageConversation, detect_symptoms

logger = StructuredLogger(__name__)
settings = get_settings()

# Process-wide state: the roster is read-only, caches only grow.
gateway = get_gateway()
specialty_cache = ResponseCache("specialties")
chat_cache = ResponseCache("chat")
classifier = SpecialtyClassifier(gateway, cache=specialty_cache)
analyzer = SymptomAnalyzer(gateway, classifier, DOCTORS)
chat_service = ChatService(gateway, cache=chat_cache)
triage = TriageConversation(gateway, analyzer, chat_service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and connect to Gemini if a key is present."""
    setup_logging(use_json=settings.log_json)
    logger.info("Starting CuraGo triage service", environment=settings.environment)
    if gateway.initialize():
        logger.info("Gemini available. AI triage enabled.", models=gateway.models)
    else:
        logger.warning("Gemini not available. Serving local fallbacks only.")
    logger.info("Ready to serve requests.")
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="CuraGo Triage Service",
    description="Symptom triage and doctor recommendation API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Request-ID"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Request ID tracking and access logging."""
    start_time = time.time()
    request_id = set_request_id(request.headers.get("X-Request-ID"))

    try:
        response = await call_next(request)
    except Exception as exc:
        # The 500 body is written by unhandled_error_handler further out.
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=500,
            duration_ms=(time.time() - start_time) * 1000,
            client_ip=client_identifier(request),
            error=f"{type(exc).__name__}: {exc}",
        )
        raise

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=(time.time() - start_time) * 1000,
        client_ip=client_identifier(request),
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body') or 'body'}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", exc, method=request.method, path=request.url.path)
    request_id = get_request_id()
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
        },
        headers={"X-Request-ID": request_id} if request_id else None,
    )


def _json(model, headers: Optional[dict] = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        model.model_dump(mode="json", by_alias=True),
        status_code=status_code,
        headers=headers,
    )


@app.get("/")
async def index():
    return {
        "service": "CuraGo Triage Service",
        "version": __version__,
        "endpoints": {
            "/health": "GET - Service health",
            "/chat": "POST - Symptom triage and health chat",
            "/api/symptom-analysis": "POST - Specialties and doctors for a symptom list",
            "/api/ai-symptom-analysis": "POST - Symptom analysis with conditions and urgency",
            "/api/medical-report": "POST - Structured medical report",
            "/api/detect-symptoms": "POST - Detect symptom mentions in a message",
            "/api/doctors": "GET - Doctor directory (optional ?specialty=)",
            "/api/doctors/{id}": "GET - Single doctor profile",
        },
    }


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "environment": settings.environment,
        "gemini": gateway.available,
        "models": gateway.models,
        "cache": {
            "specialties": len(specialty_cache),
            "chat": len(chat_cache),
        },
    }


@app.post("/api/symptom-analysis", response_model=SymptomAnalysisResponse)
async def symptom_analysis(request: SymptomAnalysisRequest, req: Request):
    rate_limit_headers = check_rate_limit("symptom-analysis", req)
    result = await analyzer.analyze(request.symptoms)
    return _json(SymptomAnalysisResponse(
        symptoms=result.symptoms,
        relevant_specialties=result.relevant_specialties,
        recommended_doctors=[to_recommendation(d) for d in result.recommended_doctors],
        possible_conditions=result.ai_analysis.possible_conditions,
        urgency_level=result.ai_analysis.urgency_level,
    ), headers=rate_limit_headers)


@app.post("/api/ai-symptom-analysis", response_model=AISymptomAnalysisResponse)
async def ai_symptom_analysis(request: SymptomAnalysisRequest, req: Request):
    rate_limit_headers = check_rate_limit("ai-symptom-analysis", req)
    result = await analyzer.analyze(request.symptoms)
    return _json(AISymptomAnalysisResponse(
        symptoms=result.symptoms,
        relevant_specialties=result.relevant_specialties,
        recommended_doctors=[to_recommendation(d) for d in result.recommended_doctors],
        possible_conditions=result.ai_analysis.possible_conditions,
        urgency_level=result.ai_analysis.urgency_level,
        ai_analysis=result.ai_analysis,
    ), headers=rate_limit_headers)


@app.post("/api/medical-report", response_model=MedicalReportResponse)
async def medical_report(request: SymptomAnalysisRequest, req: Request):
    rate_limit_headers = check_rate_limit("medical-report", req)
    result = await analyzer.analyze(request.symptoms, limit=REPORT_DOCTOR_LIMIT)
    report = build_medical_report(result.symptoms, result.ai_analysis)
    logger.info("Medical report generated", report_id=report.report_id)
    return _json(MedicalReportResponse(
        **report.model_dump(),
        recommended_doctors=[to_recommendation(d) for d in result.recommended_doctors],
    ), headers=rate_limit_headers)


@app.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, req: Request):
    rate_limit_headers = check_rate_limit("chat", req)
    turn = await triage.handle_turn(request.message, request.to_state(), request.chat_history)
    state = turn.state
    return _json(ChatResponse(
        response=turn.response,
        chat_history=turn.history,
        detected_symptoms=state.detected_symptoms,
        collecting_symptoms=state.collecting_symptoms,
        recommend_doctors=state.recommend_doctors,
        urgency_level=state.urgency_level,
        emergency_detected=state.emergency_detected,
        stage=state.stage,
        source=turn.source,
        show_doctor_recommendations=turn.show_doctor_recommendations,
        recommended_doctors=[to_recommendation(d) for d in turn.recommended_doctors],
        relevant_specialties=turn.relevant_specialties,
        medical_report=turn.medical_report.summary if turn.medical_report else None,
        report=turn.medical_report,
    ), headers=rate_limit_headers, status_code=503 if turn.degraded else 200)


@app.post("/api/detect-symptoms", response_model=DetectSymptomsResponse)
async def detect(request: DetectSymptomsRequest, req: Request):
    rate_limit_headers = check_rate_limit("detect-symptoms", req)
    result = await detect_symptoms(request.message, gateway)
    return _json(DetectSymptomsResponse(
        contains_symptoms=result.contains_symptoms,
        detected_symptoms=result.detected_symptoms,
    ), headers=rate_limit_headers)


@app.get("/api/doctors")
async def list_doctors(specialty: Optional[str] = None):
    doctors = DOCTORS
    if specialty:
        wanted = specialty.strip().casefold()
        doctors = [d for d in DOCTORS if d.specialty.casefold() == wanted]
    return {
        "doctors": [d.model_dump(mode="json", by_alias=True) for d in doctors],
        "count": len(doctors),
    }


@app.get("/api/doctors/{doctor_id}")
async def get_doctor(doctor_id: str):
    doctor = find_doctor(doctor_id)
    if doctor is None:
        return JSONResponse({"error": "Doctor not found"}, status_code=404)
    return doctor.model_dump(mode="json", by_alias=True)

