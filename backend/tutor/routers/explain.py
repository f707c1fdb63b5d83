"""
Word and sentence explanations.

These endpoints back the explainer overlay: a learner selects a word or a
sentence anywhere in the app (a tutor reply, a newspaper article) and gets a
definition, meaning in context and usage examples.
"""

from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import field_validator

from ..errors import AIResponseError, FlowValidationError
from ..gemini_client import GeminiClient
from ..llm import CamelModel, get_llm, run_structured
from .auth import User, metered_user


router = APIRouter(prefix="/explain", tags=["explain"])

FALLBACK_EXPLANATION = (
	"Sorry, I encountered an issue trying to explain that. Please try rephrasing your query or be more specific."
)


class ExplainTextInput(CamelModel):
	# A word, phrase, sentence, or a question such as "what does ephemeral mean?"
	text_to_explain: str
	context_sentence: Optional[str] = None


class ExplainTextOutput(CamelModel):
	explanation: str
	original_context_used: Optional[str] = None
	example_sentences: Optional[List[str]] = None


class ExplainWordInput(CamelModel):
	word: str
	context: str


class ExplainWordOutput(CamelModel):
	word: str
	definition: str
	contextual_meaning: str
	synonyms: List[str] = []
	antonyms: List[str] = []
	examples: List[str] = []

	@field_validator("synonyms", "antonyms", "examples", mode="before")
	@classmethod
	def _null_as_empty(cls, v):
		return [] if v is None else v


def _explain_text_prompt(req: ExplainTextInput) -> str:
	context_note = ""
	context_rule = ""
	if req.context_sentence:
		context_note = f'(An optional context sentence was programmatically passed: "{req.context_sentence}")\n'
		context_rule = (
			f'   - A separate context sentence was provided ("{req.context_sentence}"); if the core subject is a word, '
			"prioritize it as the context.\n"
		)
	return (
		"You are an expert English language tutor. The user will provide text, and you need to explain it.\n"
		f'User\'s input: "{req.text_to_explain}"\n'
		f"{context_note}\n"
		"Your primary tasks are:\n"
		"1. Identify the core subject: the specific word, phrase, or sentence the user wants to understand. "
		"\"What does 'ephemeral' mean?\" -> the word \"ephemeral\"; \"Explain 'raining cats and dogs'\" -> that phrase; "
		"a full sentence on its own -> that sentence.\n"
		"2. Context:\n"
		"   - If the input includes a sentence that gives context for a word (e.g. \"explain 'ubiquitous' in 'AI is ubiquitous'\"), use it.\n"
		f"{context_rule}"
		"3. Explanation by core subject type:\n"
		"   - Single word: a detailed definition; if context was identified, its meaning in that context, labelled "
		"\"Meaning in context: ...\"; and three distinct example sentences. Set explanation to the definition plus contextual meaning, "
		"originalContextUsed to the context sentence used (null if none), exampleSentences to the three examples.\n"
		"   - Phrase or sentence: a detailed explanation of its meaning. Set originalContextUsed to null and exampleSentences to null.\n\n"
		"Return ONLY a JSON object with keys: explanation (string), originalContextUsed (string or null), "
		"exampleSentences (array of strings or null). No text outside the JSON."
	)


def _explain_word_prompt(req: ExplainWordInput) -> str:
	return (
		f'Analyze the word "{req.word}" within the context of the sentence: "{req.context}". '
		"Provide a detailed analysis as a single JSON object with these keys: "
		'"word", "definition", "contextualMeaning", "synonyms" (array), "antonyms" (array), "examples" (array of 5 sentences). '
		"If synonyms or antonyms are not applicable, provide an empty array. No text outside the JSON."
	)


@router.post("/text", response_model=ExplainTextOutput)
async def explain_text(
	req: ExplainTextInput,
	client: GeminiClient = Depends(get_llm),
	user: User = Depends(metered_user),
):
	if not req.text_to_explain.strip():
		raise FlowValidationError("textToExplain must not be empty")
	out = await run_structured(client, _explain_text_prompt(req), ExplainTextOutput, flow="explain_text")
	if out is None:
		return ExplainTextOutput(explanation=FALLBACK_EXPLANATION)
	return out


@router.post("/word", response_model=ExplainWordOutput)
async def explain_word(
	req: ExplainWordInput,
	client: GeminiClient = Depends(get_llm),
	user: User = Depends(metered_user),
):
	if not req.word.strip():
		raise FlowValidationError("word must not be empty")
	out = await run_structured(client, _explain_word_prompt(req), ExplainWordOutput, flow="explain_word")
	if out is None:
		raise AIResponseError("Failed to get a valid explanation from the model.")
	return out
