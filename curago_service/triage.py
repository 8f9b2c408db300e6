"""
Conversational symptom triage.

Conversation state travels with every request and response; nothing is kept
server-side. A conversation moves initial -> collecting -> reporting ->
complete. The emergency flag can be raised on any turn and never clears.
"""
import re
from dataclasses import dataclass, field
from typing import Literal, Optional

from pydantic import Field

from .analysis import SymptomAnalyzer, heuristic_urgency, is_critical
from .chat import ChatMessage, ChatService, start_history
from .doctors import CamelModel, ScoredDoctor
from .gemini_gateway import GeminiGateway
from .json_utils import ParseError, coerce_string_list, parse_structured_output
from .prompts import SYMPTOM_CHECK_PROMPT, SYMPTOM_EXTRACTION_PROMPT
from .report import MedicalReport, build_medical_report
from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)

REPORT_DOCTOR_LIMIT = 5

SYMPTOM_PREFILTER = re.compile(
    r"fever|cough|pain|ache|headache|nausea|dizziness|fatigue|sore|rash|infection"
    r"|sick|throat|stomach|chest|breathing|itching|joint|back|symptom",
    re.IGNORECASE,
)

NO_MORE_SYMPTOMS = re.compile(
    r"\b(no( more| other| additional)* symptoms?|no|nope|that'?s (all|it)|nothing else"
    r"|that is (all|it)|done|i'?m done|finished|complete)\b",
    re.IGNORECASE,
)

DOCTOR_REQUEST = re.compile(
    r"\b(doctors?|specialists?|physicians?|recommend|who should i see)\b",
    re.IGNORECASE,
)

COMMON_SYMPTOMS: list[str] = [
    "headache", "pain", "fever", "cough", "sore throat", "nausea", "vomiting",
    "diarrhea", "rash", "fatigue", "dizziness", "shortness of breath", "chest pain",
    "abdominal pain", "joint pain", "back pain", "weakness", "runny nose", "congestion",
]

EMERGENCY_WARNING = (
    "IMPORTANT: Some of what you describe can be a sign of a medical emergency. "
    "If symptoms are severe or getting worse, call your local emergency number "
    "or go to the nearest emergency department now."
)

Stage = Literal["initial", "collecting", "reporting", "complete"]


class ConversationState(CamelModel):
    detected_symptoms: list[str] = Field(default_factory=list)
    collecting_symptoms: bool = False
    recommend_doctors: bool = False
    urgency_level: Literal["non-urgent", "moderate", "urgent"] = "non-urgent"
    emergency_detected: bool = False
    stage: Stage = "initial"


@dataclass
class DetectionResult:
    contains_symptoms: bool
    detected_symptoms: list[str] = field(default_factory=list)


def keyword_symptoms(message: str, keywords: Optional[list[str]] = None) -> list[str]:
    """Known symptom phrases in ``message``; "pain" is dropped when "chest pain" matched."""
    lowered = message.lower()
    found = [k for k in (COMMON_SYMPTOMS if keywords is None else keywords) if k in lowered]
    return [k for k in found if not any(k != other and k in other for other in found)]


async def detect_symptoms(message: str, gateway: GeminiGateway) -> DetectionResult:
    if not message or not SYMPTOM_PREFILTER.search(message):
        return DetectionResult(False)

    if gateway.available:
        answer = await gateway.generate(SYMPTOM_CHECK_PROMPT.format(message=message))
        if answer is not None and answer.strip().upper().startswith("YES"):
            text = await gateway.generate(SYMPTOM_EXTRACTION_PROMPT.format(message=message))
            if text is not None:
                try:
                    symptoms = [
                        s.lower() for s in coerce_string_list(parse_structured_output(text, expected=list))
                    ]
                except ParseError as e:
                    logger.warning("Could not parse extracted symptoms", error=str(e))
                    symptoms = []
                if symptoms:
                    return DetectionResult(True, symptoms)

    symptoms = keyword_symptoms(message)
    return DetectionResult(bool(symptoms), symptoms)


@dataclass
class TriageTurn:
    state: ConversationState
    response: str
    history: list[ChatMessage]
    source: str = "triage"
    degraded: bool = False
    show_doctor_recommendations: bool = False
    relevant_specialties: list[str] = field(default_factory=list)
    recommended_doctors: list[ScoredDoctor] = field(default_factory=list)
    medical_report: Optional[MedicalReport] = None


class TriageConversation:
    """Drives one turn of the triage conversation."""

    def __init__(self, gateway: GeminiGateway, analyzer: SymptomAnalyzer, chat: ChatService):
        self.gateway = gateway
        self.analyzer = analyzer
        self.chat = chat

    async def handle_turn(
        self,
        message: str,
        state: Optional[ConversationState] = None,
        history: Optional[list[ChatMessage]] = None,
    ) -> TriageTurn:
        state = state.model_copy(deep=True) if state is not None else ConversationState()
        history = start_history(history)
        history.append(ChatMessage.of("user", message))

        turn = TriageTurn(state=state, response="", history=history)
        already_flagged = state.emergency_detected
        if state.stage == "complete":
            await self._chat(turn, message)
        else:
            await self._advance(turn, message)

        self._check_emergency(state)
        if state.emergency_detected and not already_flagged:
            turn.response = f"{EMERGENCY_WARNING}\n\n{turn.response}"

        history.append(ChatMessage.of("model", turn.response))
        logger.info(
            "Triage turn handled",
            stage=state.stage,
            symptom_count=len(state.detected_symptoms),
            emergency=state.emergency_detected,
            source=turn.source,
        )
        return turn

    async def _advance(self, turn: TriageTurn, message: str) -> None:
        state = turn.state
        no_more = state.collecting_symptoms and bool(NO_MORE_SYMPTOMS.search(message))
        had_symptoms = bool(state.detected_symptoms)

        new_symptoms: list[str] = []
        if not no_more:
            detection = await detect_symptoms(message, self.gateway)
            known = {s.casefold() for s in state.detected_symptoms}
            for symptom in detection.detected_symptoms:
                if symptom.casefold() not in known:
                    known.add(symptom.casefold())
                    new_symptoms.append(symptom)
            state.detected_symptoms.extend(new_symptoms)
            if new_symptoms and not self._check_emergency(state):
                state.urgency_level = heuristic_urgency(state.detected_symptoms)

        doctor_request = bool(DOCTOR_REQUEST.search(message))
        # A doctor request only reports on symptoms collected on earlier turns.
        if (no_more and state.detected_symptoms) or (doctor_request and had_symptoms):
            await self._report(turn)
        elif new_symptoms and state.collecting_symptoms:
            turn.response = (
                f"I've noted these additional symptoms: {', '.join(new_symptoms)}. "
                "Do you have any other symptoms you'd like to tell me about?"
            )
        elif new_symptoms:
            state.collecting_symptoms = True
            state.stage = "collecting"
            turn.response = (
                f"I notice you mentioned {', '.join(new_symptoms)}. Thanks for sharing that. "
                "Do you have any other symptoms you'd like to tell me about?"
            )
        else:
            await self._chat(turn, message)

    async def _report(self, turn: TriageTurn) -> None:
        state = turn.state
        state.stage = "reporting"
        symptoms = list(state.detected_symptoms)
        result = await self.analyzer.analyze(symptoms, limit=REPORT_DOCTOR_LIMIT)

        state.collecting_symptoms = False
        state.recommend_doctors = True
        if not state.emergency_detected:
            state.urgency_level = result.ai_analysis.urgency_level
        report = build_medical_report(
            symptoms,
            result.ai_analysis,
            urgency_level=state.urgency_level,
            emergency_detected=state.emergency_detected,
        )

        turn.show_doctor_recommendations = True
        turn.relevant_specialties = result.relevant_specialties
        turn.recommended_doctors = result.recommended_doctors
        turn.medical_report = report
        turn.response = (
            "Thank you for sharing your symptoms. Here's a summary of your condition:\n\n"
            f"{report.summary}\n\n"
            f"Based on your symptoms ({', '.join(symptoms)}), I recommend consulting with a "
            f"{', '.join(result.relevant_specialties)}. I'm displaying available specialists "
            "that you can book an appointment with right away."
        )
        state.stage = "complete"
        logger.info("Medical report generated", report_id=report.report_id)

    async def _chat(self, turn: TriageTurn, message: str) -> None:
        text, source, degraded = await self.chat.generate_text(message)
        turn.response = text
        turn.source = source
        turn.degraded = degraded

    @staticmethod
    def _check_emergency(state: ConversationState) -> bool:
        """Raise the sticky emergency flag when a detected symptom is critical.

        Returns True while the flag is raised, whether set now or on an earlier turn.
        Only the symptom set is scanned: a question that merely names a
        critical condition does not flag the conversation.
        """
        if state.emergency_detected:
            return True
        if any(is_critical(s) for s in state.detected_symptoms):
            state.emergency_detected = True
            state.urgency_level = "urgent"
            logger.warning("Possible emergency detected", symptoms=state.detected_symptoms)
            return True
        return False
