from __future__ import annotations
import io
import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

import httpx
import pytesseract
from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .errors import FlowValidationError
from .settings import settings

logger = logging.getLogger(__name__)

_FILE_ID_RE = re.compile(r"/file/d/([A-Za-z0-9_-]+)")
DRIVE_DOWNLOAD_URL = "https://drive.usercontent.google.com/download"


def drive_file_id(url: str) -> Optional[str]:
	"""File id of a Google Drive share link, or None if ``url`` is not one."""
	try:
		parsed = urlparse(url.strip())
	except ValueError:
		return None
	if parsed.scheme not in ("http", "https") or "drive.google.com" not in (parsed.hostname or ""):
		return None
	match = _FILE_ID_RE.search(parsed.path)
	if match:
		return match.group(1)
	ids = parse_qs(parsed.query).get("id")
	if ids and ids[0]:
		return ids[0]
	return None


def is_google_drive_pdf_link(url: str) -> bool:
	return drive_file_id(url) is not None


def drive_download_url(file_id: str) -> str:
	# confirm=t skips the virus-scan interstitial for large files
	return f"{DRIVE_DOWNLOAD_URL}?id={file_id}&export=download&confirm=t"


async def download_pdf(url: str, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> bytes:
	file_id = drive_file_id(url)
	if file_id is None:
		raise FlowValidationError("Please enter a valid Google Drive link to a PDF file.")
	limit = settings.pdf_max_bytes
	chunks = bytearray()
	try:
		async with httpx.AsyncClient(timeout=60, follow_redirects=True, transport=transport) as client:
			async with client.stream("GET", drive_download_url(file_id)) as r:
				r.raise_for_status()
				async for chunk in r.aiter_bytes():
					chunks.extend(chunk)
					if len(chunks) > limit:
						raise FlowValidationError(f"The PDF is larger than {limit // (1024 * 1024)} MB.")
	except httpx.HTTPError as e:
		logger.warning("PDF download failed for %s: %s", file_id, e)
		raise FlowValidationError("Could not download the PDF. Make sure the file is shared with 'Anyone with the link'.", e)
	data = bytes(chunks)
	if not looks_like_pdf(data):
		raise FlowValidationError("The Google Drive link did not return a PDF file.")
	return data


def looks_like_pdf(data: bytes) -> bool:
	return data[:1024].lstrip().startswith(b"%PDF")


def normalize_text(text: str) -> str:
	text = text.replace("\r\n", "\n").replace("\r", "\n")
	text = re.sub(r"[ \t]+", " ", text)
	text = re.sub(r"\n{3,}", "\n\n", text)
	return text.strip()


def extract_pdf_text(data: bytes) -> str:
	"""Text of the first ``PDF_MAX_PAGES`` pages, clamped to ``PDF_MAX_CHARS``."""
	try:
		reader = PdfReader(io.BytesIO(data))
		texts: list[str] = []
		for page in reader.pages[: settings.pdf_max_pages]:
			page_text = page.extract_text() or ""
			if page_text.strip():
				texts.append(page_text)
	except (PyPdfError, ValueError) as e:
		raise FlowValidationError("The file could not be read as a PDF.", e)
	return normalize_text("\n\n".join(texts))[: settings.pdf_max_chars]


def ocr_image_text(data: bytes) -> str:
	try:
		img = Image.open(io.BytesIO(data))
		# open() is lazy; truncated files only fail once pixels are decoded
		img.load()
	except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
		raise FlowValidationError("The uploaded file is not a readable image.", e)
	try:
		text = pytesseract.image_to_string(img)
	except pytesseract.TesseractNotFoundError as e:
		logger.error("tesseract binary not found: %s", e)
		raise FlowValidationError("OCR is not available on this server. Install the 'tesseract-ocr' system package.", e)
	except pytesseract.TesseractError as e:
		logger.warning("tesseract failed: %s", e)
		raise FlowValidationError("Text could not be read from the uploaded image.", e)
	return normalize_text(text)[: settings.pdf_max_chars]


def looks_like_useful_text(text: str) -> bool:
	# Scanned PDFs often yield only page numbers or stray glyphs
	return len(re.findall(r"[A-Za-z]{3,}", text)) >= 20
