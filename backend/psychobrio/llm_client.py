from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import GenerationUnavailable
from .settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
	system_instruction: str
	user_prompt: str
	temperature: float
	max_output_tokens: int


@dataclass(frozen=True)
class GenerationResult:
	text: str
	model: str


class TextGenerator(Protocol):
	async def generate(self, request: GenerationRequest) -> GenerationResult: ...


def error_code_for(exc: Exception) -> str:
	if isinstance(exc, httpx.HTTPStatusError):
		status = exc.response.status_code
		if status == 429:
			return "rate_limited"
		if status in (401, 403):
			return "invalid_credentials"
	return "unavailable"


def _completion_text(value: Any) -> str:
	# Providers send null content on refusals and safety blocks
	if not isinstance(value, str):
		raise ValueError(f"completion has no text (got {type(value).__name__})")
	return value.strip()


class TextGenerationClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise GenerationUnavailable("invalid_credentials", "GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		timeout = settings.llm_timeout_seconds
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.fallback_api_key)
		self._fallback_model = settings.fallback_model
		self._fallback_base_url = settings.fallback_base_url
		self._fallback_headers = {
			"Authorization": f"Bearer {settings.fallback_api_key}" if settings.fallback_api_key else "",
			"Content-Type": "application/json",
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=timeout, transport=transport)

	async def generate(self, request: GenerationRequest) -> GenerationResult:
		payload: Dict[str, Any] = {
			"systemInstruction": {"parts": [{"text": request.system_instruction}]},
			"contents": [{"role": "user", "parts": [{"text": request.user_prompt}]}],
			"generationConfig": {
				"temperature": request.temperature,
				"maxOutputTokens": request.max_output_tokens,
			},
		}
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
			data = r.json()
			text = _completion_text(data["candidates"][0]["content"]["parts"][0]["text"])
			return GenerationResult(text=text, model=self.model)
		except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as primary_error:
			code = error_code_for(primary_error)
			logger.warning("Gemini generation failed (%s): %s", code, primary_error)
			if not self._fallback_enabled:
				raise GenerationUnavailable(code, str(primary_error)) from primary_error
			return await self._fallback_generate(request, code)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, request: GenerationRequest, primary_code: str) -> GenerationResult:
		headers = {k: v for k, v in self._fallback_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._fallback_model,
			"messages": [
				{"role": "system", "content": request.system_instruction},
				{"role": "user", "content": request.user_prompt},
			],
			"temperature": request.temperature,
			"max_tokens": request.max_output_tokens,
		}
		try:
			r = await self._fallback_client.post(self._fallback_base_url, headers=headers, json=payload)
			r.raise_for_status()
			data = r.json()
			text = _completion_text(data["choices"][0]["message"]["content"])
		except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as fallback_error:
			logger.warning("Fallback generation failed: %s", fallback_error)
			# The primary failure decides what the user is told
			raise GenerationUnavailable(primary_code, str(fallback_error)) from fallback_error
		return GenerationResult(text=text, model=self._fallback_model)


class LazyTextGenerator:
	"""Builds the provider client on first use.

	Requests rejected before any generation never touch provider settings.
	"""

	def __init__(self) -> None:
		self._client: Optional[TextGenerationClient] = None

	async def generate(self, request: GenerationRequest) -> GenerationResult:
		if self._client is None:
			self._client = TextGenerationClient()
		return await self._client.generate(request)

	async def aclose(self) -> None:
		if self._client is not None:
			await self._client.aclose()
