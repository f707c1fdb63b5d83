"""Error types raised by the tutor flows and their HTTP rendering."""

from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class FlowError(Exception):
	status_code = 500

	def __init__(self, message: str, code: str, original_error: Optional[BaseException] = None) -> None:
		super().__init__(message)
		self.message = message
		self.code = code
		self.original_error = original_error


class FlowValidationError(FlowError):
	"""The learner's input cannot be processed (blank text, bad link, unreadable file)."""

	status_code = 400

	def __init__(self, message: str, original_error: Optional[BaseException] = None) -> None:
		super().__init__(message, "VALIDATION_ERROR", original_error)


class AIResponseError(FlowError):
	"""The model gave no usable output and the flow has no fallback value."""

	status_code = 502

	def __init__(self, message: str, original_error: Optional[BaseException] = None) -> None:
		super().__init__(message, "AI_RESPONSE_ERROR", original_error)


async def flow_error_handler(request: Request, exc: FlowError) -> JSONResponse:
	return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})
