from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AIResponseError, FlowValidationError
from ..gemini_client import GeminiClient, RELAXED_SAFETY_SETTINGS
from ..llm import CamelModel, get_llm, run_structured
from ..models import ConversationModule
from .auth import User, metered_user
from .progress import progress_row


router = APIRouter(prefix="/conversation", tags=["conversation"])
logger = logging.getLogger(__name__)

FALLBACK_OPENING = "Hey there, how's it going?"
FALLBACK_REPLY = "I'm having a little trouble understanding that. Could you try rephrasing?"
FALLBACK_FEEDBACK_COMMENT = "Couldn't process feedback at this moment."
MAX_HISTORY_TURNS = 10

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class StartConversationOutput(CamelModel):
    opening_message: str


class ChatTurn(CamelModel):
    role: Literal["user", "tutor"]
    text: str


class ContinueConversationInput(CamelModel):
    user_message: str
    history: List[ChatTurn] = Field(default_factory=list)


class FeedbackSuggestion(CamelModel):
    original_chunk: str
    corrected_chunk: str
    explanation: str


class ConversationFeedback(CamelModel):
    is_perfect: bool
    suggestions: Optional[List[FeedbackSuggestion]] = None
    overall_comment: str


class ContinueConversationOutput(CamelModel):
    ai_reply: str
    feedback: ConversationFeedback


class CheckGrammarInput(CamelModel):
    user_text: str


class CheckGrammarOutput(CamelModel):
    has_errors: bool
    corrected_sentence: str = ""
    explanation: str = ""


class ExplainMessageInput(CamelModel):
    message: str


class SentenceExplanation(CamelModel):
    sentence: str
    explanation: str


class ExplainMessageOutput(CamelModel):
    explanations: List[SentenceExplanation]


def current_time_context(now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now()
    hour = now.hour
    if hour < 12:
        time_of_day = "morning"
    elif hour < 17:
        time_of_day = "afternoon"
    else:
        time_of_day = "evening"
    return {
        "time_of_day": time_of_day,
        "day_of_week": DAY_NAMES[now.weekday()],
        "is_weekend": now.weekday() >= 5,
    }


def _opening_prompt(context: Dict[str, Any]) -> str:
    return (
        "You are starting a natural conversation as a person named John. Your goal is to create an opening that feels spontaneous, relatable, and authentic.\n"
        "For this conversation, adopt a specific, subtle persona (e.g., witty, curious, thoughtful, energetic, calm). Do not announce your persona. Just let it color your language naturally.\n"
        "Your opening line should reflect this persona, be human-like, and invite a response.\n\n"
        "IMPORTANT GUIDELINES:\n"
        "1. Be conversational and natural - start as if you're sharing something that just occurred to you.\n"
        "2. Make it relatable - reference common experiences or observations.\n"
        "3. Vary your approach - sometimes share an observation, ask about experiences, or start with a relatable scenario.\n"
        "4. Keep it genuine - avoid overly polished or formal language. Never reveal you are an AI.\n\n"
        f"Current context: It's {context['time_of_day']} on a {context['day_of_week']}"
        f"{' (the weekend)' if context['is_weekend'] else ''}.\n\n"
        'Return ONLY a JSON object with exactly one key: openingMessage (string).'
    )


def _reply_prompt(user_message: str, history: List[ChatTurn]) -> str:
    history_block = ""
    recent = history[-MAX_HISTORY_TURNS:]
    if recent:
        lines = "\n".join(f"{'User' if t.role == 'user' else 'You'}: {t.text}" for t in recent)
        history_block = f"Conversation so far (for context only, do NOT give feedback on it):\n'''\n{lines}\n'''\n\n"
    return (
        "You are an AI English tutor and a friendly, engaging conversation partner.\n"
        "You will receive the user's latest message.\n\n"
        "Your two primary tasks are:\n"
        "1. Converse: respond naturally and engagingly to the user's message to keep the conversation flowing. This is the aiReply field.\n"
        "2. Analyze the user's English in their LATEST message only (spelling, grammar, awkward phrasing) and build the feedback object:\n"
        "   - If the English is perfect and natural: isPerfect=true, suggestions=[], and a positive overallComment.\n"
        "   - Otherwise: isPerfect=false, and one suggestion per distinct issue with originalChunk (the exact segment), "
        "correctedChunk, and explanation naming the error type (e.g. \"Subject-verb agreement: 'he go' should be 'he goes'.\", "
        "\"Spelling: 'recieve' should be 'receive'.\", \"Tense error: 'I have went' should be 'I have gone'.\"). "
        "Give a brief, encouraging overallComment.\n\n"
        f"{history_block}"
        f"User's latest message:\n'''\n{user_message}\n'''\n\n"
        "Return ONLY a JSON object with keys: aiReply (string), feedback (object with isPerfect boolean, "
        "suggestions array of {originalChunk, correctedChunk, explanation}, overallComment string). "
        "No text outside the JSON."
    )


def _grammar_prompt(user_text: str) -> str:
    return (
        f'Please act as a grammar correction tool. Analyze the following sentence for any grammatical errors: "{user_text}".\n'
        "Respond ONLY with a valid JSON object with this structure:\n"
        '{"hasErrors": boolean, "correctedSentence": "string", "explanation": "string"}\n'
        'If there are no errors, hasErrors must be false and both strings must be empty. '
        'If the input is trivial (e.g. "hi", "ok", a single word with no obvious error), treat it as having no errors. '
        "If the input is not in English, set hasErrors to false."
    )


def _explain_message_prompt(message: str) -> str:
    return (
        f'Analyze the following message: "{message}".\n\n'
        "Your task is to:\n"
        "1. Break the message down into individual sentences.\n"
        "2. For each sentence, provide a simple, clear explanation of its meaning in plain English.\n\n"
        'Respond ONLY with a JSON object with a single key "explanations": an array of objects, each with keys "sentence" and "explanation".\n\n'
        "Example:\n"
        "Input: \"I'm feeling a bit under the weather, so I might just call it a day.\"\n"
        'Output: {"explanations": [{"sentence": "I\'m feeling a bit under the weather, so I might just call it a day.", '
        '"explanation": "The speaker feels slightly sick and is thinking about stopping their work or activities for the day."}]}'
    )


@router.post("/start", response_model=StartConversationOutput)
async def start_conversation(
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
    db: Session = Depends(get_db),
):
    out = await run_structured(
        client, _opening_prompt(current_time_context()), StartConversationOutput, flow="start_conversation"
    )
    if out is None or not out.opening_message.strip():
        logger.warning("start_conversation: using fallback opening")
        out = StartConversationOutput(opening_message=FALLBACK_OPENING)
    row = progress_row(db, ConversationModule, user.username)
    row.last_opening = out.opening_message
    db.commit()
    return out


@router.post("/reply", response_model=ContinueConversationOutput)
async def continue_conversation(
    req: ContinueConversationInput,
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
    db: Session = Depends(get_db),
):
    if not req.user_message.strip():
        raise FlowValidationError("userMessage must not be empty")
    out = await run_structured(
        client,
        _reply_prompt(req.user_message, req.history),
        ContinueConversationOutput,
        flow="continue_conversation",
        safety_settings=RELAXED_SAFETY_SETTINGS,
    )
    if out is None:
        return ContinueConversationOutput(
            ai_reply=FALLBACK_REPLY,
            feedback=ConversationFeedback(is_perfect=True, suggestions=[], overall_comment=FALLBACK_FEEDBACK_COMMENT),
        )
    if out.feedback.suggestions is None:
        out.feedback.suggestions = []
    row = progress_row(db, ConversationModule, user.username)
    row.turns += 1
    if out.feedback.is_perfect:
        row.perfect_turns += 1
    db.commit()
    return out


@router.post("/grammar", response_model=CheckGrammarOutput)
async def check_grammar(
    req: CheckGrammarInput,
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
):
    out = await run_structured(
        client, _grammar_prompt(req.user_text), CheckGrammarOutput, flow="check_grammar", thinking_budget=0
    )
    if out is None:
        return CheckGrammarOutput(has_errors=False)
    if not out.has_errors:
        out.corrected_sentence = ""
        out.explanation = ""
    return out


@router.post("/explain", response_model=ExplainMessageOutput)
async def explain_message(
    req: ExplainMessageInput,
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
):
    out = await run_structured(client, _explain_message_prompt(req.message), ExplainMessageOutput, flow="explain_message")
    if out is None:
        raise AIResponseError("Failed to get a valid explanation from the model.")
    return out
