from __future__ import annotations

from datetime import datetime, timedelta

from tutor.cleanup import purge_older_than_one_week
from tutor.db import SessionLocal
from tutor.models import AuthSession, ReadingModule, TranslationModule, UserAccount
from tutor.routers.progress import progress_row


def test_progress_empty_for_new_user(client) -> None:
    r = client.get("/progress")
    assert r.status_code == 200
    assert r.json() == {
        "username": "tester",
        "conversation": None,
        "translation": None,
        "reading": None,
        "newspaper": None,
    }


def test_purge_removes_stale_rows_and_dormant_users() -> None:
    now = datetime(2025, 6, 9, 12)
    old = now - timedelta(days=8)
    recent = now - timedelta(days=1)
    with SessionLocal() as db:
        db.add_all(
            [
                UserAccount(username="old", created_at=old, updated_at=old),
                TranslationModule(username="old", created_at=old, updated_at=old),
                UserAccount(username="active", created_at=old, updated_at=old),
                ReadingModule(username="active", created_at=recent, updated_at=recent),
            ]
        )
        db.commit()

        removed = purge_older_than_one_week(db, now=now)

        assert removed == 2
        assert db.get(UserAccount, "old") is None
        assert db.get(TranslationModule, "old") is None
        # kept because a progress row is still fresh
        assert db.get(UserAccount, "active") is not None
        assert db.get(ReadingModule, "active") is not None


def test_service_endpoints(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    info = client.get("/info").json()
    assert info["gemini_configured"] is True
    assert info["news_configured"] is False


def test_progress_row_starts_counters_at_zero() -> None:
    with SessionLocal() as db:
        row = progress_row(db, ReadingModule, "newcomer")
        assert row.questions_answered == 0
        row.questions_answered += 1
        db.commit()
    with SessionLocal() as db:
        assert db.get(ReadingModule, "newcomer").questions_answered == 1
        assert db.get(UserAccount, "newcomer") is not None


def test_first_reply_is_recorded(client, llm) -> None:
    llm.queue(
        {
            "aiReply": "Nice! What did you cook?",
            "feedback": {"isPerfect": True, "suggestions": [], "overallComment": "Well said."},
        }
    )
    r = client.post("/conversation/reply", json={"userMessage": "I cooked dinner today."})
    assert r.status_code == 200
    assert client.get("/progress").json()["conversation"]["turns"] == 1


def test_purge_drops_idle_sessions() -> None:
    now = datetime(2025, 6, 9, 12)
    with SessionLocal() as db:
        db.add_all(
            [
                AuthSession(session_id="idle", username="asha", created_at=now - timedelta(days=9), last_activity_at=now - timedelta(days=8)),
                AuthSession(session_id="live", username="asha", created_at=now - timedelta(days=9), last_activity_at=now - timedelta(hours=1)),
            ]
        )
        db.commit()

        assert purge_older_than_one_week(db, now=now) == 1
        assert db.get(AuthSession, "idle") is None
        assert db.get(AuthSession, "live") is not None
