from __future__ import annotations

import asyncio
from datetime import date

import httpx

from tutor import news
from tutor.settings import settings

TODAY = date(2025, 6, 9)


def _article(**overrides):
    article = {
        "title": "Monsoon arrives early",
        "description": "Kerala sees first showers.",
        "content": "Kerala saw the first monsoon showers on Monday...",
        "url": "https://example.com/monsoon",
        "publishedAt": "2025-06-09T06:30:00Z",
        "source": {"id": "the-hindu", "name": "The Hindu"},
    }
    article.update(overrides)
    return article


def test_pick_recent_article_skips_old_and_incomplete() -> None:
    articles = [
        _article(title=None),
        _article(publishedAt="2025-06-07T23:59:00Z"),
        _article(title="Yesterday's story", publishedAt="2025-06-08T00:00:00Z", content=None),
    ]
    picked = news.pick_recent_article(articles, TODAY)
    assert picked is not None
    assert picked.title == "Yesterday's story"
    # content falls back to the description
    assert picked.content == "Kerala sees first showers."


def test_pick_recent_article_none_match() -> None:
    assert news.pick_recent_article([_article(publishedAt="2025-06-01T00:00:00Z")], TODAY) is None


def test_fetch_without_key_returns_none(monkeypatch) -> None:
    monkeypatch.setattr(settings, "news_api_key", None)
    assert asyncio.run(news.fetch_news_article()) is None


def test_fetch_sends_expected_query(monkeypatch) -> None:
    monkeypatch.setattr(settings, "news_api_key", "k")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["key"] = request.headers.get("X-Api-Key")
        return httpx.Response(200, json={"status": "ok", "articles": [_article()]})

    result = asyncio.run(news.fetch_news_article(transport=httpx.MockTransport(handler), today=TODAY))
    assert result is not None
    assert result.source_name == "The Hindu"
    assert seen["key"] == "k"
    assert seen["params"]["q"] == "India current events"
    assert seen["params"]["sources"] == "the-times-of-india,the-hindu,google-news-in"
    assert seen["params"]["from"] == "2025-06-08"
    assert seen["params"]["to"] == "2025-06-09"
    assert seen["params"]["pageSize"] == "5"


def test_fetch_http_error_returns_none(monkeypatch) -> None:
    monkeypatch.setattr(settings, "news_api_key", "k")
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"status": "error", "code": "apiKeyInvalid"}))
    assert asyncio.run(news.fetch_news_article(transport=transport, today=TODAY)) is None
