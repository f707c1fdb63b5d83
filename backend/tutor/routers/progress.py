from __future__ import annotations
import json
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db, Base
from ..models import UserAccount, ConversationModule, TranslationModule, ReadingModule, NewspaperModule
from .auth import User, get_current_user


router = APIRouter(prefix="/progress", tags=["progress"])

T = TypeVar("T", bound=Base)


def progress_row(db: Session, model: Type[T], username: str) -> T:
	"""Fetch the user's row for a module, creating it (and the account) if missing."""
	ua = db.get(UserAccount, username)
	if not ua:
		db.add(UserAccount(username=username))
	row = db.get(model, username)
	if not row:
		row = model(username=username)
		db.add(row)
		# Column defaults only land on flush; counters are incremented right after
		db.flush()
	return row


def _loads(value: Optional[str]) -> Any:
	if not value:
		return None
	try:
		return json.loads(value)
	except ValueError:
		return None


@router.get("")
async def get_progress(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Dict[str, Any]:
	conv = db.get(ConversationModule, user.username)
	tr = db.get(TranslationModule, user.username)
	rd = db.get(ReadingModule, user.username)
	np = db.get(NewspaperModule, user.username)
	return {
		"username": user.username,
		"conversation": (
			{"turns": conv.turns, "perfect_turns": conv.perfect_turns, "last_opening": conv.last_opening}
			if conv else None
		),
		"translation": (
			{
				"attempts": tr.attempts,
				"accurate_total": tr.accurate_total,
				"last_paragraph": tr.last_paragraph,
				"last_feedback": _loads(tr.last_feedback_json),
			}
			if tr else None
		),
		"reading": (
			{
				"questions_answered": rd.questions_answered,
				"correct_total": rd.correct_total,
				"last_article_date": rd.last_article_date,
			}
			if rd else None
		),
		"newspaper": (
			{
				"documents_processed": np.documents_processed,
				"last_source": np.last_source,
				"last_topics": _loads(np.last_topics_json) or [],
			}
			if np else None
		),
	}
