"""
Hindi -> English translation practice.

The learner is shown a short Hindi paragraph and types an English translation;
the model grades meaning, grammar, vocabulary and sentence structure and
returns segment-level feedback.
"""

from __future__ import annotations
import json
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import field_validator
from sqlalchemy.orm import Session

from ..db import get_db
from ..gemini_client import GeminiClient, RELAXED_SAFETY_SETTINGS
from ..llm import CamelModel, get_llm, run_structured
from ..models import TranslationModule
from .auth import User, metered_user
from .progress import progress_row


router = APIRouter(prefix="/translation", tags=["translation"])
logger = logging.getLogger(__name__)

FALLBACK_PARAGRAPH = "क्षमा करें, मैं अभी एक हिंदी अनुच्छेद उत्पन्न करने में असमर्थ हूँ।"
EMPTY_INPUT_SUMMARY = "Input error: Original Hindi paragraph and user translation cannot be empty."
FALLBACK_SUMMARY = "Sorry, I encountered an issue evaluating the translation. Please try again."

ERROR_TYPES = ("grammar", "vocabulary", "sentence_structure", "meaning_accuracy", "style")
ErrorType = Literal["grammar", "vocabulary", "sentence_structure", "meaning_accuracy", "style"]


class GenerateParagraphInput(CamelModel):
	# Optional everyday topic hint, e.g. "weekend plans"
	topic: Optional[str] = None


class GenerateParagraphOutput(CamelModel):
	hindi_paragraph: str


class EvaluateTranslationInput(CamelModel):
	original_hindi_paragraph: str
	user_english_translation: str


class DetailedFeedbackItem(CamelModel):
	original_hindi_segment: Optional[str] = None
	user_translation_segment: Optional[str] = None
	suggested_correction: str
	explanation: str
	error_type: Optional[ErrorType] = None

	@field_validator("error_type", mode="before")
	@classmethod
	def _unknown_error_type(cls, v):
		# Models sometimes invent categories; keep the item, drop the label
		if isinstance(v, str):
			v = v.strip().lower().replace(" ", "_")
			return v if v in ERROR_TYPES else None
		return None


class EvaluateTranslationOutput(CamelModel):
	is_translation_accurate: bool
	feedback_summary: str
	detailed_feedback_items: Optional[List[DetailedFeedbackItem]] = None


def _paragraph_prompt(topic: Optional[str]) -> str:
	topic_line = f"Write about this topic: {topic.strip()}.\n" if topic and topic.strip() else ""
	return (
		"You are an AI assistant tasked with generating content for language learning exercises.\n"
		"Your goal is to create a random, medium-length paragraph in Hindi.\n"
		"The paragraph should:\n"
		"- Be written in Devanagari script.\n"
		"- Be approximately 2 to 4 sentences long.\n"
		"- Cover a general, everyday topic (e.g., daily activities, weather, hobbies, a short observation).\n"
		"- Use a variety of tenses and grammatical structures suitable for an intermediate learner.\n"
		"- Be natural and coherent.\n\n"
		"Example topics: a person describing their morning routine, a comment about the current season, "
		"a brief thought about a recent event, plans for the weekend.\n"
		f"{topic_line}"
		"Do not include any English text or explanations. Only provide the Hindi paragraph.\n\n"
		"Return ONLY a JSON object with exactly one key: hindiParagraph (string)."
	)


def _evaluation_prompt(original: str, translation: str) -> str:
	return (
		"You are an expert bilingual (Hindi-English) language tutor. Evaluate a user's English translation of a Hindi paragraph.\n\n"
		f"Original Hindi Paragraph:\n'''\n{original}\n'''\n\n"
		f"User's English Translation:\n'''\n{translation}\n'''\n\n"
		"Compare the translation with the original. Focus on:\n"
		"1. Accuracy of meaning.\n"
		"2. Grammar (tense, subject-verb agreement, articles, prepositions, word order).\n"
		"3. Vocabulary choice (appropriate and natural for the context).\n"
		"4. Sentence structure.\n\n"
		"Return ONLY a JSON object with keys:\n"
		"- isTranslationAccurate: true if the translation is largely correct and captures the main essence, even with minor imperfections; false for significant errors.\n"
		"- feedbackSummary: a brief, encouraging overall comment.\n"
		"- detailedFeedbackItems: one item per significant error or suggestion, each with originalHindiSegment (recommended), "
		"userTranslationSegment (optional), suggestedCorrection, explanation, and errorType "
		f"(one of {', '.join(ERROR_TYPES)}). Empty array if the translation is perfect.\n"
		"Keep feedback constructive and easy to understand."
	)


@router.post("/paragraph", response_model=GenerateParagraphOutput)
async def generate_hindi_paragraph(
	req: Optional[GenerateParagraphInput] = None,
	client: GeminiClient = Depends(get_llm),
	user: User = Depends(metered_user),
	db: Session = Depends(get_db),
):
	topic = req.topic if req else None
	out = await run_structured(
		client,
		_paragraph_prompt(topic),
		GenerateParagraphOutput,
		flow="generate_hindi_paragraph",
		safety_settings=RELAXED_SAFETY_SETTINGS,
	)
	if out is None or not out.hindi_paragraph.strip():
		return GenerateParagraphOutput(hindi_paragraph=FALLBACK_PARAGRAPH)
	row = progress_row(db, TranslationModule, user.username)
	row.last_paragraph = out.hindi_paragraph
	db.commit()
	return out


@router.post("/evaluate", response_model=EvaluateTranslationOutput)
async def evaluate_hindi_translation(
	req: EvaluateTranslationInput,
	client: GeminiClient = Depends(get_llm),
	user: User = Depends(metered_user),
	db: Session = Depends(get_db),
):
	if not req.original_hindi_paragraph.strip() or not req.user_english_translation.strip():
		return EvaluateTranslationOutput(
			is_translation_accurate=False,
			feedback_summary=EMPTY_INPUT_SUMMARY,
			detailed_feedback_items=[],
		)
	out = await run_structured(
		client,
		_evaluation_prompt(req.original_hindi_paragraph, req.user_english_translation),
		EvaluateTranslationOutput,
		flow="evaluate_hindi_translation",
		safety_settings=RELAXED_SAFETY_SETTINGS,
	)
	if out is None:
		return EvaluateTranslationOutput(
			is_translation_accurate=False,
			feedback_summary=FALLBACK_SUMMARY,
			detailed_feedback_items=[],
		)
	if out.detailed_feedback_items is None:
		out.detailed_feedback_items = []

	row = progress_row(db, TranslationModule, user.username)
	row.attempts += 1
	if out.is_translation_accurate:
		row.accurate_total += 1
	row.last_paragraph = req.original_hindi_paragraph
	row.last_feedback_json = json.dumps(out.model_dump(by_alias=True), ensure_ascii=False)
	db.commit()
	return out
