"""
Symptom-to-specialty mapping.

``lookup_specialties`` is the static table; ``SpecialtyClassifier`` asks Gemini
first and only falls back to the table when the model produced nothing.
"""
import asyncio
from typing import Optional

from .gemini_gateway import GeminiGateway
from .json_utils import ParseError, coerce_string_list, parse_structured_output
from .prompts import SPECIALTY_PROMPT
from .response_cache import ResponseCache, normalize_key
from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)

DEFAULT_SPECIALTY = "General Physician"
MAX_SPECIALTIES_PER_SYMPTOM = 3

# Vocabulary embedded in the classification prompt and scanned for in
# unparseable responses. Declaration order is the match order.
KNOWN_SPECIALTIES: list[str] = [
    "General Physician", "Cardiologist", "Dermatologist", "Orthopedic",
    "Pediatrician", "Gynecologist", "Neurologist", "Psychiatrist",
    "Ophthalmologist", "ENT Specialist", "Pulmonologist", "Gastroenterologist",
    "Endocrinologist", "Rheumatologist", "Infectious Disease Specialist",
    "Urologist", "Nephrologist", "Hematologist", "Oncologist",
]

SYMPTOM_TO_SPECIALTY: dict[str, list[str]] = {
    "fever": ["General Physician", "Infectious Disease Specialist"],
    "cough": ["Pulmonologist", "General Physician", "ENT Specialist"],
    "headache": ["Neurologist", "General Physician"],
    "rash": ["Dermatologist", "Allergist"],
    "joint pain": ["Orthopedic", "Rheumatologist"],
    "chest pain": ["Cardiologist", "General Physician", "Pulmonologist"],
    "abdominal pain": ["Gastroenterologist", "General Physician"],
    "sore throat": ["ENT Specialist", "General Physician"],
    "eye pain": ["Ophthalmologist"],
    "depression": ["Psychiatrist", "Psychologist"],
    "anxiety": ["Psychiatrist", "Psychologist"],
    "nausea": ["Gastroenterologist", "General Physician"],
    "vomiting": ["Gastroenterologist", "General Physician"],
    "diarrhea": ["Gastroenterologist", "General Physician"],
    "fatigue": ["General Physician", "Endocrinologist"],
    "weakness": ["Neurologist", "General Physician"],
    "dizziness": ["Neurologist", "ENT Specialist", "Cardiologist"],
    "shortness of breath": ["Pulmonologist", "Cardiologist"],
    "back pain": ["Orthopedic", "Neurologist", "Pain Specialist"],
    "insomnia": ["Psychiatrist", "Neurologist", "Sleep Specialist"],
    "runny nose": ["ENT Specialist", "Allergist", "General Physician"],
    "breathing problems": ["Pulmonologist", "Allergist", "Cardiologist"],
    "difficulty swallowing": ["ENT Specialist", "Gastroenterologist"],
    "stomach pain": ["Gastroenterologist", "General Physician"],
    "ear pain": ["ENT Specialist", "General Physician"],
    "tooth pain": ["Dentist"],
    "knee pain": ["Orthopedic", "Sports Medicine Specialist"],
    "high blood pressure": ["Cardiologist", "Nephrologist"],
    "high glucose": ["Endocrinologist", "General Physician"],
    "vision problems": ["Ophthalmologist", "Neurologist"],
    "itching": ["Dermatologist", "Allergist"],
    "swelling": ["Allergist", "Rheumatologist", "General Physician"],
}


def _extend_unique(target: list[str], items: list[str]) -> None:
    for item in items:
        if item not in target:
            target.append(item)


def lookup_specialties(
    phrase: str,
    partial: bool = False,
    table: Optional[dict[str, list[str]]] = None,
) -> list[str]:
    """Map a symptom phrase to candidate specialties.

    Exact match on the normalized phrase first. With ``partial=True`` and no
    exact hit, every key that contains or is contained in the phrase
    contributes, in table order. Returns ``[]`` when nothing matches.
    """
    table = SYMPTOM_TO_SPECIALTY if table is None else table
    key = phrase.strip().lower()
    if not key:
        return []
    if key in table:
        return list(table[key])
    if not partial:
        return []

    matches: list[str] = []
    for symptom, specialties in table.items():
        if symptom in key or key in symptom:
            _extend_unique(matches, specialties)
    return matches


def extract_specialties_from_text(text: str, vocabulary: Optional[list[str]] = None) -> list[str]:
    """Known specialty names mentioned anywhere in ``text``, in vocabulary order."""
    vocabulary = KNOWN_SPECIALTIES if vocabulary is None else vocabulary
    lowered = text.lower()
    return [name for name in vocabulary if name.lower() in lowered]


class SpecialtyClassifier:
    """Classifies one symptom into a non-empty, ordered list of specialties."""

    def __init__(
        self,
        gateway: GeminiGateway,
        cache: Optional[ResponseCache] = None,
        table: Optional[dict[str, list[str]]] = None,
        vocabulary: Optional[list[str]] = None,
    ):
        self.gateway = gateway
        self.cache = cache if cache is not None else ResponseCache("specialties")
        self.table = SYMPTOM_TO_SPECIALTY if table is None else table
        self.vocabulary = KNOWN_SPECIALTIES if vocabulary is None else vocabulary

    async def classify(self, symptom: str) -> list[str]:
        key = normalize_key(symptom)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Using cached specialty mapping", symptom=key)
            return list(cached)

        prompt = SPECIALTY_PROMPT.format(
            symptom=symptom.strip(),
            specialties=", ".join(self.vocabulary),
        )
        text = await self.gateway.generate(prompt)

        specialties: list[str] = []
        if text is not None:
            try:
                parsed = parse_structured_output(text, expected=list)
                specialties = coerce_string_list(parsed, limit=MAX_SPECIALTIES_PER_SYMPTOM)
            except ParseError:
                specialties = []

            if not specialties:
                specialties = extract_specialties_from_text(text, self.vocabulary)
                if specialties:
                    logger.warning(
                        "Specialties recovered by keyword scan of model text",
                        symptom=key,
                        specialties=specialties,
                    )
        else:
            specialties = lookup_specialties(key, partial=True, table=self.table)
            if specialties:
                logger.warning(
                    "Gemini unavailable; using static specialty table",
                    symptom=key,
                    specialties=specialties,
                )

        if not specialties:
            specialties = [DEFAULT_SPECIALTY]

        self.cache.set(key, specialties)
        logger.info("Cached specialty mapping", symptom=key, specialties=specialties)
        return list(specialties)

    async def classify_all(self, symptoms: list[str]) -> list[str]:
        """Union of per-symptom specialties, ordered by input position."""
        results = await asyncio.gather(*(self.classify(s) for s in symptoms))
        combined: list[str] = []
        for specialties in results:
            _extend_unique(combined, specialties)
        return combined or [DEFAULT_SPECIALTY]
