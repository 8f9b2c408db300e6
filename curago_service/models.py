"""
Pydantic request/response models for the CuraGo API.

Wire names are camelCase; Python attributes are snake_case.
"""
from typing import Literal, Optional

from pydantic import Field, field_validator

from .analysis import AIAnalysis
from .chat import ChatMessage
from .doctors import CamelModel, RecommendedDoctor
from .input_sanitization import sanitize_message, sanitize_symptoms
from .report import MedicalReport
from .triage import ConversationState, Stage


# --- Symptom analysis ---

class SymptomAnalysisRequest(CamelModel):
    symptoms: list[str]

    @field_validator("symptoms")
    @classmethod
    def symptoms_not_empty(cls, v: list[str]) -> list[str]:
        cleaned = sanitize_symptoms(v)
        if not cleaned:
            raise ValueError("At least one symptom is required")
        return cleaned


class SymptomAnalysisResponse(CamelModel):
    symptoms: list[str]
    relevant_specialties: list[str]
    recommended_doctors: list[RecommendedDoctor]
    possible_conditions: list[str]
    urgency_level: str


class AISymptomAnalysisResponse(SymptomAnalysisResponse):
    ai_analysis: AIAnalysis


class MedicalReportResponse(MedicalReport):
    recommended_doctors: list[RecommendedDoctor] = Field(default_factory=list)


# --- Chat / triage ---

class ChatRequest(CamelModel):
    message: str
    chat_history: list[ChatMessage] = Field(default_factory=list)
    detected_symptoms: list[str] = Field(default_factory=list)
    collecting_symptoms: bool = False
    recommend_doctors: bool = False
    urgency_level: Literal["non-urgent", "moderate", "urgent"] = "non-urgent"
    emergency_detected: bool = False
    stage: Optional[Stage] = None

    @field_validator("message")
    @classmethod
    def message_not_empty(cls, v: str) -> str:
        cleaned = sanitize_message(v)
        if not cleaned:
            raise ValueError("Message is required")
        return cleaned

    @field_validator("detected_symptoms")
    @classmethod
    def clean_symptoms(cls, v: list[str]) -> list[str]:
        return sanitize_symptoms(v)

    def to_state(self) -> ConversationState:
        stage = self.stage
        if stage is None:
            # Clients that predate the stage field only send the flags.
            stage = "collecting" if self.collecting_symptoms else "initial"
        return ConversationState(
            detected_symptoms=self.detected_symptoms,
            collecting_symptoms=self.collecting_symptoms,
            recommend_doctors=self.recommend_doctors,
            urgency_level=self.urgency_level,
            emergency_detected=self.emergency_detected,
            stage=stage,
        )


class ChatResponse(CamelModel):
    response: str
    chat_history: list[ChatMessage]
    detected_symptoms: list[str]
    collecting_symptoms: bool
    recommend_doctors: bool
    urgency_level: str
    emergency_detected: bool
    stage: Stage
    source: str
    show_doctor_recommendations: bool = False
    recommended_doctors: list[RecommendedDoctor] = Field(default_factory=list)
    relevant_specialties: list[str] = Field(default_factory=list)
    medical_report: Optional[str] = None
    report: Optional[MedicalReport] = None


# --- Symptom detection ---

class DetectSymptomsRequest(CamelModel):
    message: str

    @field_validator("message")
    @classmethod
    def clean_message(cls, v: str) -> str:
        return sanitize_message(v)


class DetectSymptomsResponse(CamelModel):
    contains_symptoms: bool
    detected_symptoms: list[str]
