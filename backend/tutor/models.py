from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text
from .db import Base


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	requests_used = Column(Integer, default=0, nullable=False)
	requests_limit = Column(Integer, default=1000, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# Token jti
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class UserAccount(Base):
	__tablename__ = "user_accounts"
	username = Column(String(128), primary_key=True, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ConversationModule(Base):
	__tablename__ = "conversation_module"
	username = Column(String(128), primary_key=True)
	turns = Column(Integer, default=0, nullable=False)
	perfect_turns = Column(Integer, default=0, nullable=False)
	last_opening = Column(Text, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class TranslationModule(Base):
	__tablename__ = "translation_module"
	username = Column(String(128), primary_key=True)
	attempts = Column(Integer, default=0, nullable=False)
	accurate_total = Column(Integer, default=0, nullable=False)
	last_paragraph = Column(Text, nullable=True)
	last_feedback_json = Column(Text, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ReadingModule(Base):
	__tablename__ = "reading_module"
	username = Column(String(128), primary_key=True)
	questions_answered = Column(Integer, default=0, nullable=False)
	correct_total = Column(Integer, default=0, nullable=False)
	last_article = Column(Text, nullable=True)
	last_article_date = Column(String(64), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class NewspaperModule(Base):
	__tablename__ = "newspaper_module"
	username = Column(String(128), primary_key=True)
	documents_processed = Column(Integer, default=0, nullable=False)
	last_source = Column(Text, nullable=True)
	last_topics_json = Column(Text, nullable=True)  # JSON list of topic titles
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


PROGRESS_MODELS = (ConversationModule, TranslationModule, ReadingModule, NewspaperModule)
