from __future__ import annotations
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from .settings import settings

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "India current events"
# NewsAPI.org source ids
DEFAULT_SOURCES: List[str] = ["the-times-of-india", "the-hindu", "google-news-in"]


class NewsArticle(BaseModel):
	title: str
	description: str
	url: str
	published_at: str
	source_name: str
	content: str = ""


def _parse_published(value: str) -> Optional[datetime]:
	try:
		parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except ValueError:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


def pick_recent_article(articles: List[Dict[str, Any]], today: date) -> Optional[NewsArticle]:
	"""First complete article published between the start of yesterday and the end of today (UTC)."""
	yesterday = today - timedelta(days=1)
	window_start = datetime.combine(yesterday, time.min, tzinfo=timezone.utc)
	window_end = datetime.combine(today, time.max, tzinfo=timezone.utc)
	for article in articles:
		title = article.get("title")
		description = article.get("description") or ""
		content = article.get("content") or ""
		url = article.get("url")
		published = article.get("publishedAt")
		source_name = (article.get("source") or {}).get("name")
		if not (title and (description or content) and url and published and source_name):
			continue
		published_at = _parse_published(published)
		if published_at is None or not (window_start <= published_at <= window_end):
			continue
		return NewsArticle(
			title=title,
			description=description,
			url=url,
			published_at=published,
			source_name=source_name,
			content=content or description,
		)
	return None


async def fetch_news_article(
	query: Optional[str] = None,
	preferred_sources: Optional[List[str]] = None,
	*,
	transport: Optional[httpx.AsyncBaseTransport] = None,
	today: Optional[date] = None,
) -> Optional[NewsArticle]:
	if not settings.news_api_key:
		logger.info("NEWS_API_KEY is not set; skipping news lookup")
		return None
	today = today or datetime.now(timezone.utc).date()
	yesterday = today - timedelta(days=1)
	sources = preferred_sources or DEFAULT_SOURCES
	params = {
		"q": query or DEFAULT_QUERY,
		"sources": ",".join(sources),
		"language": "en",
		"sortBy": "publishedAt",
		"from": yesterday.isoformat(),
		"to": today.isoformat(),
		"pageSize": 5,
	}
	headers = {"X-Api-Key": settings.news_api_key}
	try:
		async with httpx.AsyncClient(timeout=15, transport=transport) as client:
			r = await client.get(settings.news_api_base_url, params=params, headers=headers)
			r.raise_for_status()
			data = r.json()
	except (httpx.HTTPError, ValueError) as e:
		logger.error("Error fetching news from NewsAPI: %s", e)
		return None
	if data.get("status") != "ok":
		logger.error("NewsAPI returned status=%s: %s", data.get("status"), data.get("message"))
		return None
	article = pick_recent_article(data.get("articles") or [], today)
	if article is None:
		logger.info("No NewsAPI article matched the date window for query %r", params["q"])
	return article
