from __future__ import annotations
import base64
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import AnyHttpUrl
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AIResponseError, FlowValidationError
from ..gemini_client import GeminiClient
from ..llm import CamelModel, get_llm, run_structured, run_structured_parts
from ..models import NewspaperModule
from ..pdf_text import (
    download_pdf,
    extract_pdf_text,
    is_google_drive_pdf_link,
    looks_like_pdf,
    looks_like_useful_text,
    ocr_image_text,
)
from ..settings import settings
from .auth import User, metered_user
from .progress import progress_row


router = APIRouter(prefix="/newspaper", tags=["newspaper"])
logger = logging.getLogger(__name__)

FAILED_MESSAGE = "Failed to process the PDF content. The AI model did not return a valid response."
NO_TOPICS_MESSAGE = "No news topics could be extracted from the provided PDF link, or the content was minimal."
IMAGE_TYPES = ("image/png", "image/jpeg")


class ProcessPdfInput(CamelModel):
    pdf_url: AnyHttpUrl


class TopicSection(CamelModel):
    topic_title: str
    content: str


class ProcessPdfOutput(CamelModel):
    topics: Optional[List[TopicSection]] = None
    message: Optional[str] = None


class AnalyzeArticleInput(CamelModel):
    article_content: str


class SentenceAnalysis(CamelModel):
    original_sentence: str
    simple_explanation: str


class AnalyzeArticleOutput(CamelModel):
    analyses: List[SentenceAnalysis]


_TOPICS_INSTRUCTIONS = (
    "Your tasks:\n"
    "1. Identify the distinct news articles or sections in the newspaper.\n"
    "2. For each, write a concise, relevant topic title (e.g. \"India's Economic Outlook\", \"City Council Approves Park Renovation\").\n"
    "3. Give the full text content of that article, cleaned of hyphenation and column breaks. Keep the original wording; do not summarize.\n"
    "4. Skip advertisements, page furniture, and tables of stock prices or listings.\n"
    "5. If the content is empty or cannot be structured into topics, return an empty topics array and a message explaining why.\n\n"
    "Return ONLY a JSON object with keys: topics (array of objects with topicTitle and content), message (optional string)."
)


def _topics_prompt(text: str) -> str:
    return (
        "You are an assistant that organizes the text of a newspaper into distinct news topics.\n"
        "The raw text below was extracted from a newspaper PDF; articles may be interleaved because of the column layout.\n\n"
        f"Raw Text:\n'''\n{text}\n'''\n\n"
        f"{_TOPICS_INSTRUCTIONS}"
    )


def _analyze_prompt(article: str) -> str:
    return (
        "You are an English language expert specializing in simplifying complex text for learners.\n"
        "The user has provided an article. Your task is to:\n"
        "1. Break the article text down into its individual, grammatically complete sentences.\n"
        "2. For EACH sentence, give a clear, concise explanation of its meaning in simple English and everyday vocabulary.\n"
        "3. Explain what the sentence means rather than just rephrasing it slightly.\n\n"
        f"Article Text:\n'''\n{article}\n'''\n\n"
        "Return ONLY a JSON object with key analyses: an array of objects with originalSentence and simpleExplanation."
    )


def finalize_topics(out: Optional[ProcessPdfOutput]) -> ProcessPdfOutput:
    if out is None:
        return ProcessPdfOutput(topics=[], message=FAILED_MESSAGE)
    topics = [t for t in (out.topics or []) if t.topic_title.strip() and t.content.strip()]
    message = out.message
    if not topics and not message:
        message = NO_TOPICS_MESSAGE
    return ProcessPdfOutput(topics=topics, message=message)


async def _topics_from_pdf(client: GeminiClient, data: bytes) -> ProcessPdfOutput:
    text = extract_pdf_text(data)
    if looks_like_useful_text(text):
        out = await run_structured(client, _topics_prompt(text), ProcessPdfOutput, flow="process_pdf_newspaper")
        return finalize_topics(out)
    # Scanned newspaper: let the model read the PDF itself
    logger.info("process_pdf_newspaper: no text layer (%d chars), sending PDF inline", len(text))
    parts = [
        {"inline_data": {"mime_type": "application/pdf", "data": base64.b64encode(data).decode("ascii")}},
        {"text": "You are an assistant that organizes a newspaper into distinct news topics. Read the attached newspaper PDF.\n\n" + _TOPICS_INSTRUCTIONS},
    ]
    out = await run_structured_parts(client, parts, ProcessPdfOutput, flow="process_pdf_newspaper")
    return finalize_topics(out)


def _record(db: Session, username: str, source: str, result: ProcessPdfOutput) -> None:
    row = progress_row(db, NewspaperModule, username)
    row.documents_processed += 1
    row.last_source = source
    row.last_topics_json = json.dumps([t.topic_title for t in result.topics or []], ensure_ascii=False)
    db.commit()


@router.post("/process", response_model=ProcessPdfOutput, response_model_exclude_none=True)
async def process_pdf_newspaper(
    req: ProcessPdfInput,
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
    db: Session = Depends(get_db),
):
    url = str(req.pdf_url)
    if not is_google_drive_pdf_link(url):
        raise FlowValidationError("Please enter a valid Google Drive link to a PDF file.")
    data = await download_pdf(url)
    result = await _topics_from_pdf(client, data)
    _record(db, user.username, url, result)
    return result


@router.post("/upload", response_model=ProcessPdfOutput, response_model_exclude_none=True)
async def process_uploaded_newspaper(
    file: UploadFile = File(...),
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
    db: Session = Depends(get_db),
):
    data = await file.read(settings.pdf_max_bytes + 1)
    if len(data) > settings.pdf_max_bytes:
        raise FlowValidationError(f"The file is larger than {settings.pdf_max_bytes // (1024 * 1024)} MB.")
    if looks_like_pdf(data):
        result = await _topics_from_pdf(client, data)
    elif file.content_type in IMAGE_TYPES:
        text = ocr_image_text(data)
        if not text:
            raise FlowValidationError("No text could be read from the image.")
        out = await run_structured(client, _topics_prompt(text), ProcessPdfOutput, flow="process_uploaded_newspaper")
        result = finalize_topics(out)
    else:
        raise FlowValidationError("Upload a PDF, PNG or JPEG file.")
    _record(db, user.username, file.filename or "upload", result)
    return result


@router.post("/analyze", response_model=AnalyzeArticleOutput)
async def analyze_article_sentences(
    req: AnalyzeArticleInput,
    client: GeminiClient = Depends(get_llm),
    user: User = Depends(metered_user),
):
    if not req.article_content.strip():
        return AnalyzeArticleOutput(analyses=[])
    out = await run_structured(client, _analyze_prompt(req.article_content), AnalyzeArticleOutput, flow="analyze_article_sentences")
    if out is None:
        raise AIResponseError("Failed to analyze article sentences. No output from AI model.")
    return out
