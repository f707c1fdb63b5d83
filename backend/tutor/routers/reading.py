from __future__ import annotations
import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import field_validator
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AIResponseError
from ..gemini_client import GeminiClient
from ..llm import CamelModel, get_llm, run_structured
from ..models import ReadingModule
from ..news import NewsArticle, fetch_news_article
from .auth import User, metered_user
from .progress import progress_row


router = APIRouter(prefix="/reading", tags=["reading"])
logger = logging.getLogger(__name__)

MAX_QUESTIONS = 2
NO_ARTICLE_TEXT = "I couldn't fetch an article right now. Please try again later."
NO_DATE_TEXT = "Date not available"
FALLBACK_QUESTION = "What would you like to do next?"
FALLBACK_ANSWER = "I encountered an issue trying to process your question about the article."

# sourceHint -> NewsAPI source id
SOURCE_IDS = {
    "the hindu": "the-hindu",
    "hindu": "the-hindu",
    "times of india": "the-times-of-india",
    "the times of india": "the-times-of-india",
    "google news": "google-news-in",
}


class GetNewsInput(CamelModel):
    source_hint: Optional[str] = None


class GetNewsOutput(CamelModel):
    article: str = ""
    article_date: str = ""
    questions: List[str] = []

    @field_validator("article", "article_date", "questions", mode="before")
    @classmethod
    def _null_as_missing(cls, v, info):
        if v is None:
            return [] if info.field_name == "questions" else ""
        return v


class EvaluateAnswerInput(CamelModel):
    article: str
    question: str
    user_answer: str


class EvaluateAnswerOutput(CamelModel):
    is_correct: bool
    feedback: str
    grammar_feedback: str


class ArticleQueryInput(CamelModel):
    article: str
    user_query: str


class ArticleQueryOutput(CamelModel):
    answer: str


def _news_prompt(today: date, source_hint: Optional[str]) -> str:
    yesterday = today - timedelta(days=1)
    hint = (
        f"Consider news related to topics typically covered by {source_hint}, but only if it meets the strict date criteria.\n"
        if source_hint
        else ""
    )
    return (
        "You are an AI assistant helping a user with reading comprehension.\n"
        "Provide a news article summary about current events, its publication date, and comprehension questions about it.\n\n"
        "CRITICAL DATE REQUIREMENT:\n"
        f"1. The article MUST be about events from today ({today.isoformat()}) or, if nothing suitable exists, yesterday ({yesterday.isoformat()}).\n"
        "2. DO NOT provide articles older than yesterday.\n"
        "3. If you cannot find a relevant article from today or yesterday, say so explicitly in the article field instead of giving an older one, and set articleDate to \"N/A\".\n\n"
        "Further instructions:\n"
        "4. Prefer a reputable Indian English newspaper (The Hindu, Times of India) but prioritize recency from any reputable source.\n"
        "5. Cover diverse topics; avoid repeating an article you may have provided recently.\n"
        "6. The summary must be in English, 100-200 words.\n"
        "7. Give the publication date as YYYY-MM-DD or Month DD, YYYY.\n"
        "8. Then write 1 or 2 clear comprehension questions. If no article was found, the question can be general, like "
        "\"Would you like me to try searching for news on a different topic or from a broader timeframe?\"\n"
        f"{hint}\n"
        "Return ONLY a JSON object with keys: article (string), articleDate (string), questions (array of 1-2 strings)."
    )


def _grounded_news_prompt(news: NewsArticle) -> str:
    body = news.content or news.description
    return (
        "You are an AI assistant helping a user with reading comprehension.\n"
        "Below is a real, recent news article. Summarize it in clear English, 100-200 words, using only facts from the article.\n"
        "Then write 1 or 2 clear comprehension questions answerable from your summary.\n\n"
        f"Source: {news.source_name}\nPublished: {news.published_at}\nTitle: {news.title}\n"
        f"Description: {news.description}\nContent:\n'''\n{body}\n'''\n\n"
        "Return ONLY a JSON object with keys: article (string, the summary), articleDate (string, YYYY-MM-DD), "
        "questions (array of 1-2 strings)."
    )


def _evaluation_prompt(req: EvaluateAnswerInput) -> str:
    return (
        "You are an English language and reading comprehension tutor.\n"
        "You have a news article, a question about it, and a user's answer.\n\n"
        "Your tasks are:\n"
        "1. Decide if the answer is correct, based solely on what the article states or implies. Do not use external knowledge.\n"
        "2. Briefly explain why it is correct or incorrect.\n"
        "3. Give brief, constructive feedback on the grammar of the answer. If it is incorrect, explain the specific error "
        "(e.g. 'subject-verb agreement error: \"he go\" should be \"he goes\"', 'wrong preposition: \"depend on\" not \"depend in\"') "
        "and suggest a correction. If the grammar is excellent, say so.\n\n"
        f"Original News Article:\n'''\n{req.article}\n'''\n\n"
        f'Question Asked: "{req.question}"\n\n'
        f'User\'s Answer: "{req.user_answer}"\n\n'
        "Return ONLY a JSON object with keys: isCorrect (boolean), feedback (string), grammarFeedback (string)."
    )


def _query_prompt(req: ArticleQueryInput) -> str:
    return (
        "You are a helpful assistant. The user has read the following news article and is asking a question about it.\n"
        "Answer based solely on the information explicitly or implicitly available in the article. Do not use external knowledge. "
        "If the article does not contain the information, say so clearly, e.g. \"The article does not provide information on that topic.\"\n\n"
        f"News Article:\n'''\n{req.article}\n'''\n\n"
        f'User\'s Question: "{req.user_query}"\n\n'
        "Return ONLY a JSON object with exactly one key: answer (string)."
    )


def normalize_news_output(out: GetNewsOutput) -> GetNewsOutput:
    questions = [q.strip() for q in out.questions if q and q.strip()]
    if not questions:
        return GetNewsOutput(
            article=out.article or NO_ARTICLE_TEXT,
            article_date=out.article_date or NO_DATE_TEXT,
            questions=[FALLBACK_QUESTION],
        )
    return GetNewsOutput(article=out.article, article_date=out.article_date, questions=questions[:MAX_QUESTIONS])


@router.post("/news", response_model=GetNewsOutput)
async def get_news_and_questions(
    req: Optional[GetNewsInput] = None,
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
    db: Session = Depends(get_db),
):
    source_hint = req.source_hint if req else None
    source_id = SOURCE_IDS.get((source_hint or "").strip().lower())
    news = await fetch_news_article(preferred_sources=[source_id] if source_id else None)
    if news is not None:
        prompt = _grounded_news_prompt(news)
    else:
        prompt = _news_prompt(datetime.now(timezone.utc).date(), source_hint)
    out = await run_structured(client, prompt, GetNewsOutput, flow="get_news_and_questions")
    if out is None:
        raise AIResponseError("Failed to generate news and questions.")
    if news is not None and not out.article_date:
        out.article_date = news.published_at[:10]
    out = normalize_news_output(out)

    row = progress_row(db, ReadingModule, user.username)
    row.last_article = out.article
    row.last_article_date = out.article_date
    db.commit()
    return out


@router.post("/evaluate", response_model=EvaluateAnswerOutput)
async def evaluate_user_answer(
    req: EvaluateAnswerInput,
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
    db: Session = Depends(get_db),
):
    out = await run_structured(
        client, _evaluation_prompt(req), EvaluateAnswerOutput, flow="evaluate_user_answer", thinking_budget=0
    )
    if out is None:
        raise AIResponseError("Failed to evaluate the answer.")
    row = progress_row(db, ReadingModule, user.username)
    row.questions_answered += 1
    if out.is_correct:
        row.correct_total += 1
    db.commit()
    return out


@router.post("/ask", response_model=ArticleQueryOutput)
async def answer_article_query(
    req: ArticleQueryInput,
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
):
    out = await run_structured(client, _query_prompt(req), ArticleQueryOutput, flow="answer_article_query")
    if out is None:
        return ArticleQueryOutput(answer=FALLBACK_ANSWER)
    return out
