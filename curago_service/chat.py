"""
Free-form health chat backed by Gemini, with cached replies and canned
fallbacks when the model is unavailable.
"""
from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel

from .gemini_gateway import GeminiGateway
from .prompts import ASSISTANT_PERSONA, CHAT_PROMPT, INTRO_MESSAGE
from .response_cache import ResponseCache, normalize_key
from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)

APOLOGY = (
    "I'm sorry, but I'm currently experiencing technical difficulties. "
    "Please try again in a moment."
)

# (keywords, reply); checked in order, first hit wins.
CANNED_REPLIES: list[tuple[tuple[str, ...], str]] = [
    (("fever",),
     "Fever can be a symptom of many conditions including infections, inflammation, "
     "or reactions to medications. It's often defined as a temperature above 100.4°F "
     "(38°C). Stay hydrated, rest, and consider over-the-counter medications like "
     "acetaminophen if needed. Consult a doctor if your fever is high or persistent."),
    (("headache",),
     "Headaches can be caused by stress, dehydration, eye strain, or underlying "
     "medical conditions. For mild headaches, consider rest, hydration, and "
     "over-the-counter pain relievers. If your headache is severe, sudden, or "
     "accompanied by other symptoms, please consult a healthcare provider."),
    (("cough",),
     "Coughs can be caused by allergies, infections, or irritants. For a dry cough, "
     "staying hydrated and using cough drops may help. For a productive cough, steam "
     "inhalation might provide relief. If your cough persists for more than a week, "
     "please consult a healthcare provider."),
    (("pain",),
     "Pain can be a symptom of many conditions. The appropriate treatment depends on "
     "the cause and location of the pain. For mild pain, rest and over-the-counter "
     "pain relievers may help. If your pain is severe or persistent, please consult "
     "with a healthcare provider."),
    (("aids", "hiv"),
     "HIV (Human Immunodeficiency Virus) is a virus that attacks the body's immune "
     "system. AIDS is the most advanced stage of HIV infection. Modern treatments can "
     "control HIV and prevent progression to AIDS. If you have concerns about HIV/AIDS, "
     "please consult a healthcare provider for testing, treatment options, and support."),
]


class MessagePart(BaseModel):
    text: str


class ChatMessage(BaseModel):
    role: Literal["user", "model"]
    parts: list[MessagePart]

    @classmethod
    def of(cls, role: str, text: str) -> "ChatMessage":
        return cls(role=role, parts=[MessagePart(text=text)])


def start_history(history: Optional[list[ChatMessage]]) -> list[ChatMessage]:
    """Copy of ``history``; a new conversation opens with the assistant intro."""
    if not history:
        return [ChatMessage.of("model", INTRO_MESSAGE)]
    return list(history)


def canned_reply(message: str) -> Optional[str]:
    lowered = message.lower()
    for keywords, reply in CANNED_REPLIES:
        if any(k in lowered for k in keywords):
            return reply
    return None


@dataclass
class ChatReply:
    response: str
    history: list[ChatMessage]
    source: Literal["gemini", "cache", "fallback"]
    degraded: bool = False


class ChatService:

    def __init__(self, gateway: GeminiGateway, cache: Optional[ResponseCache] = None):
        self.gateway = gateway
        self.cache = cache if cache is not None else ResponseCache("chat")

    async def generate_text(self, message: str) -> tuple[str, str, bool]:
        """Reply text, its source and whether the service is degraded."""
        key = normalize_key(message)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Using cached chat response")
            return cached, "cache", False

        prompt = CHAT_PROMPT.format(persona=ASSISTANT_PERSONA, message=message)
        text = await self.gateway.generate(prompt)
        if text:
            text = text.strip()
            self.cache.set(key, text)
            return text, "gemini", False

        canned = canned_reply(message)
        if canned is not None:
            logger.warning("Gemini unavailable; using canned chat reply")
            return canned, "fallback", False
        logger.error("Gemini unavailable and no canned reply matched")
        return APOLOGY, "fallback", True

    async def reply(self, message: str, history: Optional[list[ChatMessage]] = None) -> ChatReply:
        history = start_history(history)
        history.append(ChatMessage.of("user", message))
        text, source, degraded = await self.generate_text(message)
        history.append(ChatMessage.of("model", text))
        return ChatReply(response=text, history=history, source=source, degraded=degraded)
