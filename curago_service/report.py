"""
Medical report assembly.

``format_medical_report`` renders the plain-text summary shown in chat.
``build_medical_report`` produces the structured report with care
suggestions, prevention tips and emergency guidance.
"""
import secrets
import time
from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from .analysis import CRITICAL_SYMPTOMS, AIAnalysis, UrgencyLevel, is_critical
from .doctors import CamelModel

URGENCY_ADVICE = {
    "urgent": (
        "IMPORTANT: Your symptoms may require immediate medical attention. "
        "Please consult a healthcare provider as soon as possible."
    ),
    "moderate": (
        "Recommendation: Consider scheduling an appointment with a healthcare "
        "provider in the next few days."
    ),
    "non-urgent": (
        "Recommendation: Monitor your symptoms. If they persist or worsen, "
        "consider consulting with a healthcare provider."
    ),
}

URGENT_RECOMMENDATION = (
    "Please seek immediate medical attention. Your symptoms suggest a potentially "
    "serious condition that requires prompt evaluation by healthcare professionals."
)
POSSIBLE_EMERGENCY_RECOMMENDATION = (
    "Your symptoms may indicate a serious condition. Consider contacting a doctor "
    "immediately or seeking emergency care if symptoms worsen."
)

# First matching keyword wins for each symptom.
TREATMENT_TABLE: dict[str, list[str]] = {
    "headache": [
        "Rest in a quiet, dark room",
        "Apply cold or warm compress to your head",
        "Consider over-the-counter pain relievers like acetaminophen (follow dosage instructions)",
        "Stay hydrated",
        "Avoid potential triggers like alcohol, caffeine, or bright screens",
    ],
    "fever": [
        "Rest and stay hydrated",
        "Take over-the-counter fever reducers like acetaminophen (follow dosage instructions)",
        "Use a lightweight blanket if you have chills",
        "Wear lightweight clothing and keep room temperature comfortable",
        "Monitor temperature regularly",
    ],
    "cough": [
        "Stay hydrated with warm fluids",
        "Try honey and warm water or tea (not for children under 1 year)",
        "Use a humidifier or take a steamy shower",
        "Avoid irritants like smoke or strong scents",
        "Keep head elevated when sleeping",
    ],
    "sore throat": [
        "Gargle with warm salt water",
        "Stay hydrated with warm liquids",
        "Use throat lozenges or sprays",
        "Rest your voice and avoid irritants",
    ],
    "nausea": [
        "Stay hydrated with small sips of clear fluids",
        "Eat bland foods like crackers or toast when able",
        "Avoid strong odors, greasy or spicy foods",
        "Try ginger tea or ginger candies",
    ],
    "diarrhea": [
        "Stay hydrated with water, clear broths, and electrolyte solutions",
        "Eat bland, easy-to-digest foods (bananas, rice, applesauce, toast)",
        "Avoid dairy, fatty, spicy or high-fiber foods",
        "Wash hands frequently to prevent spread",
    ],
    "fatigue": [
        "Ensure adequate sleep (7-9 hours for adults)",
        "Stay hydrated and maintain balanced nutrition",
        "Engage in light physical activity like walking",
        "Consider a medical check-up if persistent",
    ],
    "pain": [
        "Apply hot or cold compress to affected area",
        "Consider over-the-counter pain relievers (follow dosage instructions)",
        "Rest the affected area",
        "Elevate injured limbs to reduce swelling",
    ],
}

GENERAL_TREATMENT = [
    "Rest and get adequate sleep",
    "Stay hydrated with water and clear fluids",
    "Monitor your symptoms and seek medical help if they worsen",
    "Maintain good nutrition with easily digestible foods",
]

EMERGENCY_STEPS = [
    "Call emergency services immediately",
    "Remain calm and follow emergency dispatcher instructions",
    "Do not eat or drink anything unless instructed by medical professionals",
    "If possible, have someone stay with you until help arrives",
]

INFECTION_PREVENTION = [
    "Wash hands frequently with soap and water for at least 20 seconds",
    "Avoid close contact with sick individuals",
    "Cover coughs and sneezes with a tissue or elbow",
    "Clean and disinfect frequently touched surfaces",
    "Stay up to date on recommended vaccinations",
]
INJURY_PREVENTION = [
    "Warm up before exercise and cool down afterward",
    "Use protective equipment during sports or risky activities",
    "Maintain strength and flexibility through regular exercise",
    "Ensure proper ergonomics at work and home",
]
GENERAL_PREVENTION = [
    "Maintain a balanced diet rich in fruits and vegetables",
    "Exercise regularly (aim for 150 minutes of moderate activity per week)",
    "Get adequate sleep (7-9 hours for adults)",
    "Avoid smoking and limit alcohol consumption",
]


class MedicalReport(CamelModel):
    report_id: str
    created_at: datetime
    symptoms: list[str]
    possible_conditions: list[str]
    urgency_level: UrgencyLevel
    recommended_specialties: list[str]
    additional_symptoms_to_watch: list[str] = Field(default_factory=list)
    emergency_detected: bool = False
    emergency_recommendation: Optional[str] = None
    treatment_suggestions: list[str] = Field(default_factory=list)
    prevention_tips: list[str] = Field(default_factory=list)
    summary: str = ""


def new_report_id() -> str:
    stamp = format(int(time.time() * 1000), "x")
    return f"MR-{stamp}-{secrets.token_hex(3)}".upper()


def format_medical_report(symptoms: list[str], analysis: AIAnalysis) -> str:
    if not symptoms:
        return "No symptoms reported."
    lines = [
        "Medical Report Summary",
        "----------------------",
        f"Reported Symptoms: {', '.join(symptoms)}",
        f"Possible Conditions: {', '.join(analysis.possible_conditions)}",
        f"Urgency Level: {analysis.urgency_level}",
        f"Additional Symptoms to Watch: {', '.join(analysis.additional_symptoms_to_watch)}",
        "",
        URGENCY_ADVICE[analysis.urgency_level],
    ]
    return "\n".join(lines)


def treatment_suggestions(symptoms: list[str]) -> list[str]:
    suggestions: list[str] = []
    for symptom in symptoms:
        lowered = symptom.lower()
        for keyword, steps in TREATMENT_TABLE.items():
            if keyword in lowered:
                suggestions.extend(s for s in steps if s not in suggestions)
                break
    return suggestions or list(GENERAL_TREATMENT)


def prevention_tips(symptoms: list[str]) -> list[str]:
    lowered = " ".join(symptoms).lower()
    if any(k in lowered for k in ("fever", "cough", "cold", "flu")):
        return list(INFECTION_PREVENTION)
    if any(k in lowered for k in ("pain", "injury", "sprain")):
        return list(INJURY_PREVENTION)
    return list(GENERAL_PREVENTION)


def build_medical_report(
    symptoms: list[str],
    analysis: AIAnalysis,
    report_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
    urgency_level: Optional[UrgencyLevel] = None,
    emergency_detected: bool = False,
) -> MedicalReport:
    """Report for ``symptoms``.

    A conversation passes its own ``urgency_level`` and ``emergency_detected``
    so the report never reads calmer than the conversation state.
    """
    if urgency_level is not None and urgency_level != analysis.urgency_level:
        analysis = analysis.model_copy(update={"urgency_level": urgency_level})
    has_critical = any(is_critical(s, CRITICAL_SYMPTOMS) for s in symptoms)
    urgent = analysis.urgency_level == "urgent"
    emergency = urgent or has_critical or emergency_detected

    recommendation = None
    suggestions = treatment_suggestions(symptoms)
    if emergency:
        recommendation = URGENT_RECOMMENDATION if urgent else POSSIBLE_EMERGENCY_RECOMMENDATION
        if urgent and has_critical:
            suggestions = list(EMERGENCY_STEPS)

    return MedicalReport(
        report_id=report_id or new_report_id(),
        created_at=created_at or datetime.now(timezone.utc),
        symptoms=list(symptoms),
        possible_conditions=analysis.possible_conditions,
        urgency_level=analysis.urgency_level,
        recommended_specialties=analysis.recommended_specialties,
        additional_symptoms_to_watch=analysis.additional_symptoms_to_watch,
        emergency_detected=emergency,
        emergency_recommendation=recommendation,
        treatment_suggestions=suggestions,
        prevention_tips=prevention_tips(symptoms),
        summary=format_medical_report(symptoms, analysis),
    )
