"""
Symptom analysis: specialties, ranked doctors and a short clinical read-out.

The read-out (possible conditions, urgency, symptoms to watch) comes from one
Gemini call. Any field the model leaves missing or malformed is filled by the
local keyword heuristics below, so a well-formed request always gets a
complete answer.
"""
from dataclasses import dataclass, field
from typing import Literal, Optional

from pydantic import Field

from .doctors import DOCTORS, CamelModel, Doctor, ScoredDoctor, rank_doctors
from .gemini_gateway import GeminiGateway
from .json_utils import ParseError, coerce_string_list, parse_structured_output
from .prompts import ANALYSIS_PROMPT
from .specialties import SpecialtyClassifier
from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)

UrgencyLevel = Literal["non-urgent", "moderate", "urgent"]
URGENCY_LEVELS = ("non-urgent", "moderate", "urgent")

MAX_POSSIBLE_CONDITIONS = 5
DEFAULT_CONDITION = "General malaise"

URGENT_KEYWORDS: list[str] = [
    "chest pain", "difficulty breathing", "shortness of breath", "severe pain",
    "unconscious", "stroke", "heart attack", "seizure", "severe bleeding",
    "anaphylaxis",
]

# Anything here in a reported symptom flags a possible emergency.
CRITICAL_SYMPTOMS: list[str] = URGENT_KEYWORDS + [
    "paralysis", "unable to move", "severe abdominal pain", "sudden vision loss",
    "sudden severe headache", "suicidal thoughts", "drug overdose", "poisoning",
    "severe allergic reaction", "high fever", "coughing blood",
]

MODERATE_KEYWORDS: list[str] = [
    "fever", "vomiting", "diarrhea", "abdominal pain", "persistent fever",
    "severe headache", "dehydration", "unusual rash", "sudden weakness",
]

CONDITION_TABLE: dict[str, list[str]] = {
    "fever": ["Common cold", "Influenza", "COVID-19", "Infection"],
    "cough": ["Common cold", "Bronchitis", "Asthma", "COVID-19"],
    "headache": ["Tension headache", "Migraine", "Dehydration", "Stress"],
    "nausea": ["Food poisoning", "Viral gastroenteritis", "Motion sickness", "Pregnancy"],
    "vomiting": ["Food poisoning", "Viral gastroenteritis", "Migraine", "Appendicitis"],
    "diarrhea": ["Food poisoning", "Viral gastroenteritis", "IBS", "Food intolerance"],
    "joint pain": ["Arthritis", "Injury", "Inflammation", "Gout"],
    "chest pain": ["Angina", "Heart attack", "GERD", "Muscle strain"],
    "abdominal pain": ["Gastritis", "Indigestion"],
    "sore throat": ["Pharyngitis", "Common cold"],
}

WATCH_TABLE: dict[str, list[str]] = {
    "fever": ["chills", "fatigue", "headache", "body aches"],
    "nausea": ["vomiting", "diarrhea", "abdominal pain", "loss of appetite"],
    "vomiting": ["abdominal pain", "diarrhea", "decreased appetite"],
    "headache": ["dizziness", "vision changes", "neck stiffness", "light sensitivity"],
    "cough": ["shortness of breath", "chest pain", "wheezing", "throat pain"],
    "sore throat": ["difficulty swallowing", "swollen lymph nodes", "voice changes"],
    "joint pain": ["swelling", "redness", "warmth", "limited movement"],
    "chest pain": ["shortness of breath", "sweating", "nausea", "jaw or arm pain"],
}


def _contains_any(symptoms: list[str], keywords: list[str]) -> bool:
    lowered = [s.lower() for s in symptoms]
    return any(k in s for s in lowered for k in keywords)


def heuristic_conditions(symptoms: list[str]) -> list[str]:
    """Union of table conditions for every keyword found in a symptom."""
    conditions: list[str] = []
    for symptom in symptoms:
        lowered = symptom.lower()
        for keyword, candidates in CONDITION_TABLE.items():
            if keyword in lowered:
                for condition in candidates:
                    if condition not in conditions:
                        conditions.append(condition)
    return conditions or [DEFAULT_CONDITION]


def heuristic_urgency(symptoms: list[str]) -> str:
    if _contains_any(symptoms, CRITICAL_SYMPTOMS):
        return "urgent"
    if _contains_any(symptoms, MODERATE_KEYWORDS):
        return "moderate"
    return "non-urgent"


def heuristic_watch_list(symptoms: list[str]) -> list[str]:
    reported = {s.strip().lower() for s in symptoms}
    watch: list[str] = []
    for symptom in symptoms:
        lowered = symptom.lower()
        for keyword, related in WATCH_TABLE.items():
            if keyword not in lowered:
                continue
            for item in related:
                if item not in reported and item not in watch:
                    watch.append(item)
    return watch


def is_critical(text: str, critical: Optional[list[str]] = None) -> bool:
    """True when ``text`` mentions any critical symptom (substring, case-insensitive)."""
    lowered = text.lower()
    return any(c in lowered for c in (CRITICAL_SYMPTOMS if critical is None else critical))


class AIAnalysis(CamelModel):
    possible_conditions: list[str] = Field(default_factory=list)
    urgency_level: UrgencyLevel = "non-urgent"
    additional_symptoms_to_watch: list[str] = Field(default_factory=list)
    recommended_specialties: list[str] = Field(default_factory=list)
    source: Literal["gemini", "heuristic", "mixed"] = "heuristic"


@dataclass
class SymptomAnalysis:
    symptoms: list[str]
    relevant_specialties: list[str]
    recommended_doctors: list[ScoredDoctor]
    ai_analysis: AIAnalysis
    fields_from_model: list[str] = field(default_factory=list)


class SymptomAnalyzer:
    """Runs classification, ranking and the clinical read-out for a symptom list."""

    def __init__(
        self,
        gateway: GeminiGateway,
        classifier: SpecialtyClassifier,
        roster: Optional[list[Doctor]] = None,
    ):
        self.gateway = gateway
        self.classifier = classifier
        self.roster = DOCTORS if roster is None else roster

    async def _model_read_out(self, symptoms: list[str]) -> dict:
        text = await self.gateway.generate(ANALYSIS_PROMPT.format(symptoms=", ".join(symptoms)))
        if text is None:
            return {}
        try:
            return parse_structured_output(text, expected=dict)
        except ParseError as e:
            logger.warning("Unusable analysis from Gemini", error=str(e))
            return {}

    async def analyze(self, symptoms: list[str], limit: Optional[int] = None) -> SymptomAnalysis:
        if not symptoms:
            raise ValueError("symptoms must not be empty")

        specialties = await self.classifier.classify_all(symptoms)
        doctors = rank_doctors(specialties, self.roster, limit=limit)
        raw = await self._model_read_out(symptoms)

        from_model: list[str] = []

        conditions = coerce_string_list(raw.get("possibleConditions"), limit=MAX_POSSIBLE_CONDITIONS)
        if conditions:
            from_model.append("possibleConditions")
        else:
            conditions = heuristic_conditions(symptoms)

        urgency = raw.get("urgencyLevel")
        urgency = urgency.strip().lower() if isinstance(urgency, str) else None
        if urgency in URGENCY_LEVELS:
            from_model.append("urgencyLevel")
        else:
            urgency = heuristic_urgency(symptoms)

        watch = raw.get("additionalSymptomsToWatch")
        if isinstance(watch, list):
            watch = coerce_string_list(watch)
            from_model.append("additionalSymptomsToWatch")
        else:
            watch = heuristic_watch_list(symptoms)

        if len(from_model) == 3:
            source = "gemini"
        elif from_model:
            source = "mixed"
        else:
            source = "heuristic"
        if source != "gemini":
            logger.warning(
                "Analysis used local heuristics",
                source=source,
                model_fields=from_model,
            )

        analysis = AIAnalysis(
            possible_conditions=conditions,
            urgency_level=urgency,
            additional_symptoms_to_watch=watch,
            recommended_specialties=specialties,
            source=source,
        )
        logger.info(
            "Symptom analysis complete",
            symptom_count=len(symptoms),
            specialties=specialties,
            doctor_count=len(doctors),
            urgency=urgency,
            source=source,
        )
        return SymptomAnalysis(
            symptoms=list(symptoms),
            relevant_specialties=specialties,
            recommended_doctors=doctors,
            ai_analysis=analysis,
            fields_from_model=from_model,
        )
