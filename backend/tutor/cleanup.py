from __future__ import annotations
from datetime import datetime, timedelta
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AuthSession, UserAccount, PROGRESS_MODELS


def purge_older_than_one_week(db: Session, *, now: datetime | None = None) -> int:
	threshold = (now or datetime.utcnow()) - timedelta(days=7)
	removed = 0

	for model in PROGRESS_MODELS:
		res = db.execute(delete(model).where(model.updated_at < threshold))
		removed += res.rowcount or 0

	# Dormant accounts go too, unless a progress row survived the pass above
	stale_users = db.query(UserAccount).filter(UserAccount.updated_at < threshold).all()
	for u in stale_users:
		has_rows = any(
			db.query(model).filter(model.username == u.username).first() is not None
			for model in PROGRESS_MODELS
		)
		if not has_rows:
			res = db.execute(delete(UserAccount).where(UserAccount.username == u.username))
			removed += res.rowcount or 0

	res = db.execute(delete(AuthSession).where(AuthSession.last_activity_at < threshold))
	removed += res.rowcount or 0

	db.commit()
	return removed
