"""
Doctor roster and recommendation ranking.

The roster is fixed at import time. Ranking scores each doctor against an
ordered list of relevant specialties:

    specialty_score = len(specialties) - index(doctor.specialty)   (0 if absent)
    match_score     = specialty_score * 3 + experience / 5 + rating
"""
from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ConsultationMode = Literal["video", "audio", "whatsapp", "in-person"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Doctor(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    specialty: str
    experience: int = Field(ge=0)
    rating: float = Field(ge=0, le=5)
    fee: float
    consultation_fee: float
    available_modes: list[ConsultationMode]
    languages: list[str]
    is_verified: bool = False
    reviews: int = Field(default=0, ge=0)
    specializations: list[str] = []
    short_bio: str = ""
    education: str = ""
    image: Optional[str] = None


class MatchDetails(CamelModel):
    relevant_specialty: str
    specialty_priority: int  # 1-based position in the specialty list, 0 if absent
    is_primary_recommendation: bool


class RecommendedDoctor(Doctor):
    """Doctor as returned to clients: match details, no internal score."""
    match_details: MatchDetails


@dataclass
class ScoredDoctor:
    doctor: Doctor
    match_score: float
    match_details: MatchDetails


def to_recommendation(scored: ScoredDoctor) -> RecommendedDoctor:
    return RecommendedDoctor(
        **scored.doctor.model_dump(),
        match_details=scored.match_details,
    )


def rank_doctors(
    specialties: list[str],
    roster: list[Doctor],
    limit: Optional[int] = None,
) -> list[ScoredDoctor]:
    """Filter, score and sort ``roster`` for the ordered ``specialties``.

    Falls back to the whole roster when no doctor matches, so a non-empty
    roster always yields at least one recommendation. Ties keep roster order.
    """
    matching = [d for d in roster if d.specialty in specialties]
    if not matching:
        matching = list(roster)

    scored = []
    for doctor in matching:
        index = specialties.index(doctor.specialty) if doctor.specialty in specialties else -1
        specialty_score = len(specialties) - index if index >= 0 else 0
        match_score = specialty_score * 3 + doctor.experience / 5 + doctor.rating
        scored.append(ScoredDoctor(
            doctor=doctor,
            match_score=match_score,
            match_details=MatchDetails(
                relevant_specialty=doctor.specialty,
                specialty_priority=index + 1,
                is_primary_recommendation=index == 0,
            ),
        ))

    scored.sort(key=lambda s: s.match_score, reverse=True)
    if limit is not None:
        scored = scored[:max(0, limit)]
    return scored


def find_doctor(doctor_id: str, roster: Optional[list[Doctor]] = None) -> Optional[Doctor]:
    for doctor in DOCTORS if roster is None else roster:
        if doctor.id == doctor_id:
            return doctor
    return None


DOCTORS: list[Doctor] = [
    Doctor(
        id="1",
        name="Dr. Sarah Johnson",
        specialty="General Physician",
        experience=12,
        rating=4.8,
        image="https://randomuser.me/api/portraits/women/68.jpg",
        available_modes=["video", "audio", "whatsapp", "in-person"],
        fee=500,
        consultation_fee=500,
        education="MBBS, MD - Internal Medicine",
        languages=["English", "Spanish"],
        is_verified=True,
        reviews=124,
        specializations=["General Medicine", "Family Medicine", "Preventive Care"],
        short_bio="Dedicated general physician with 12+ years of experience",
    ),
    Doctor(
        id="2",
        name="Dr. Michael Chen",
        specialty="Cardiologist",
        experience=15,
        rating=4.9,
        image="https://randomuser.me/api/portraits/men/32.jpg",
        available_modes=["video", "in-person"],
        fee=1200,
        consultation_fee=1200,
        education="MBBS, MD - Cardiology, DM - Cardiology",
        languages=["English", "Mandarin"],
        is_verified=True,
        reviews=98,
        specializations=["Interventional Cardiology", "Heart Failure", "Cardiac Imaging"],
        short_bio="Renowned cardiologist specialized in heart conditions",
    ),
    Doctor(
        id="3",
        name="Dr. Priya Patel",
        specialty="Dermatologist",
        experience=8,
        rating=4.7,
        image="https://randomuser.me/api/portraits/women/44.jpg",
        available_modes=["video", "audio", "whatsapp"],
        fee=800,
        consultation_fee=800,
        education="MBBS, MD - Dermatology",
        languages=["English", "Hindi", "Gujarati"],
        is_verified=True,
        reviews=156,
        specializations=["Medical Dermatology", "Cosmetic Dermatology", "Pediatric Dermatology"],
        short_bio="Expert dermatologist for skin conditions and cosmetic procedures",
    ),
    Doctor(
        id="4",
        name="Dr. James Wilson",
        specialty="Orthopedic",
        experience=20,
        rating=4.9,
        image="https://randomuser.me/api/portraits/men/46.jpg",
        available_modes=["video", "in-person"],
        fee=1500,
        consultation_fee=1500,
        education="MBBS, MS - Orthopedics",
        languages=["English"],
        is_verified=True,
        reviews=87,
        specializations=["Joint Replacement", "Sports Medicine", "Trauma"],
        short_bio="Experienced orthopedic surgeon for joint issues and sports injuries",
    ),
    Doctor(
        id="5",
        name="Dr. Aisha Mohammed",
        specialty="Pediatrician",
        experience=10,
        rating=4.8,
        image="https://randomuser.me/api/portraits/women/90.jpg",
        available_modes=["video", "audio", "whatsapp", "in-person"],
        fee=700,
        consultation_fee=700,
        education="MBBS, MD - Pediatrics",
        languages=["English", "Arabic"],
        is_verified=True,
        reviews=112,
        specializations=["Child Development", "Preventive Care", "Newborn Care"],
        short_bio="Compassionate pediatrician focused on child development",
    ),
    Doctor(
        id="6",
        name="Dr. Robert Garcia",
        specialty="Neurologist",
        experience=18,
        rating=4.7,
        image="https://randomuser.me/api/portraits/men/72.jpg",
        available_modes=["video", "in-person"],
        fee=1300,
        consultation_fee=1300,
        education="MBBS, MD - Neurology, DM - Neurology",
        languages=["English", "Spanish"],
        is_verified=True,
        reviews=76,
        specializations=["Stroke Management", "Movement Disorders", "Headache"],
        short_bio="Expert neurologist for stroke management and movement disorders",
    ),
    Doctor(
        id="7",
        name="Dr. Emily Thompson",
        specialty="Gastroenterologist",
        experience=14,
        rating=4.8,
        image="https://randomuser.me/api/portraits/women/28.jpg",
        available_modes=["video", "in-person"],
        fee=1100,
        consultation_fee=1100,
        education="MBBS, MD - Internal Medicine, DM - Gastroenterology",
        languages=["English"],
        is_verified=True,
        reviews=93,
        specializations=["Digestive Disorders", "Liver Disease", "Inflammatory Bowel Disease"],
        short_bio="Expert in digestive disorders and gastrointestinal health",
    ),
    Doctor(
        id="8",
        name="Dr. Ahmed Khan",
        specialty="Pulmonologist",
        experience=16,
        rating=4.6,
        image="https://randomuser.me/api/portraits/men/52.jpg",
        available_modes=["video", "in-person"],
        fee=1000,
        consultation_fee=1000,
        education="MBBS, MD - Pulmonary Medicine",
        languages=["English", "Urdu"],
        is_verified=True,
        reviews=67,
        specializations=["Respiratory Disorders", "Sleep Apnea", "COPD"],
        short_bio="Specialist in respiratory and pulmonary conditions",
    ),
    Doctor(
        id="9",
        name="Dr. Lisa Wong",
        specialty="ENT Specialist",
        experience=12,
        rating=4.7,
        image="https://randomuser.me/api/portraits/women/79.jpg",
        available_modes=["video", "audio", "in-person"],
        fee=900,
        consultation_fee=900,
        education="MBBS, MS - ENT",
        languages=["English", "Cantonese"],
        is_verified=True,
        reviews=104,
        specializations=["Ear Disorders", "Throat Conditions", "Sinus Problems"],
        short_bio="Dedicated ENT specialist for ear, nose and throat conditions",
    ),
    Doctor(
        id="10",
        name="Dr. Mark Johnson",
        specialty="Infectious Disease Specialist",
        experience=15,
        rating=4.9,
        image="https://randomuser.me/api/portraits/men/42.jpg",
        available_modes=["video", "in-person"],
        fee=1200,
        consultation_fee=1200,
        education="MBBS, MD - Internal Medicine, DM - Infectious Diseases",
        languages=["English"],
        is_verified=True,
        reviews=89,
        specializations=["Viral Infections", "Bacterial Infections", "Tropical Diseases"],
        short_bio="Specialized in diagnosing and treating infectious diseases",
    ),
]
