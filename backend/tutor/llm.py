from __future__ import annotations

import json
import logging
import re
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from .gemini_client import GeminiClient

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class CamelModel(BaseModel):
	# camelCase on the wire, snake_case in Python; both accepted on input
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


async def get_llm() -> AsyncIterator[GeminiClient]:
	try:
		client = GeminiClient()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))
	try:
		yield client
	finally:
		await client.aclose()


def extract_json_object(text: str) -> Any:
	try:
		return json.loads(text)
	except (TypeError, ValueError):
		pass
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
	if code_block:
		try:
			return json.loads(code_block.group(1))
		except ValueError:
			pass
	first = text.find("{")
	last = text.rfind("}")
	if first != -1 and last > first:
		try:
			return json.loads(text[first : last + 1])
		except ValueError:
			pass
	raise ValueError("model output did not contain a JSON object")


def parse_output(raw: str, output_model: Type[M], *, flow: str) -> Optional[M]:
	try:
		data = extract_json_object(raw)
		return output_model.model_validate(data)
	except (ValueError, ValidationError) as e:
		logger.warning("%s: discarding model output (%s)", flow, e)
		return None


async def run_structured(
	client: GeminiClient,
	prompt: str,
	output_model: Type[M],
	*,
	flow: str,
	safety_settings: Optional[List[Dict[str, str]]] = None,
	thinking_budget: Optional[int] = None,
) -> Optional[M]:
	"""Send ``prompt`` in JSON mode and validate the reply into ``output_model``.

	Returns None when the model produced nothing usable: transport failure,
	no JSON in the text, or JSON that does not match the schema. Callers
	decide between a fallback value and an error.
	"""
	try:
		raw = await client.generate(
			prompt, json_mode=True, safety_settings=safety_settings, thinking_budget=thinking_budget
		)
	except Exception as e:
		logger.warning("%s: model call failed (%s)", flow, e)
		return None
	return parse_output(raw, output_model, flow=flow)


async def run_structured_parts(
	client: GeminiClient,
	parts: List[Dict[str, Any]],
	output_model: Type[M],
	*,
	flow: str,
) -> Optional[M]:
	try:
		raw = await client.generate_multimodal(parts, json_mode=True)
	except Exception as e:
		logger.warning("%s: multimodal call failed (%s)", flow, e)
		return None
	return parse_output(raw, output_model, flow=flow)
