import json

import httpx
import pytest

from psychobrio.errors import GenerationUnavailable
from psychobrio.llm_client import GenerationRequest, TextGenerationClient, error_code_for
from psychobrio.settings import settings

REQUEST = GenerationRequest(
	system_instruction="Tu es un psychomotricien.",
	user_prompt="Conclusion pour Balance:",
	temperature=0.3,
	max_output_tokens=350,
)


def _gemini_body(text):
	return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def configured(monkeypatch):
	monkeypatch.setattr(settings, "gemini_api_key", "test-key")
	monkeypatch.setattr(settings, "gemini_provider", "ai_studio")
	monkeypatch.setattr(settings, "gemini_model", "gemini-test")
	monkeypatch.setattr(settings, "fallback_api_key", None)
	return settings


@pytest.mark.asyncio
async def test_generate_parses_first_candidate(configured):
	seen = []

	def handler(request):
		seen.append(request)
		return httpx.Response(200, json=_gemini_body("  Équilibre satisfaisant.  "))

	client = TextGenerationClient(transport=httpx.MockTransport(handler))
	try:
		result = await client.generate(REQUEST)
	finally:
		await client.aclose()

	assert result.text == "Équilibre satisfaisant."
	assert result.model == "gemini-test"
	sent = seen[0]
	assert sent.url.params["key"] == "test-key"
	assert "gemini-test:generateContent" in sent.url.path
	body = json.loads(sent.content)
	assert body["systemInstruction"]["parts"][0]["text"] == REQUEST.system_instruction
	assert body["contents"][0]["parts"][0]["text"] == REQUEST.user_prompt
	assert body["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 350}


@pytest.mark.asyncio
@pytest.mark.parametrize("status,code", [(429, "rate_limited"), (401, "invalid_credentials"), (403, "invalid_credentials"), (500, "unavailable")])
async def test_http_errors_map_to_codes(configured, status, code):
	transport = httpx.MockTransport(lambda request: httpx.Response(status, json={"error": {"message": "secret detail"}}))
	client = TextGenerationClient(transport=transport)
	try:
		with pytest.raises(GenerationUnavailable) as excinfo:
			await client.generate(REQUEST)
	finally:
		await client.aclose()
	assert excinfo.value.code == code
	assert "secret detail" not in excinfo.value.message


@pytest.mark.asyncio
async def test_malformed_body_is_unavailable(configured):
	transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
	client = TextGenerationClient(transport=transport)
	try:
		with pytest.raises(GenerationUnavailable) as excinfo:
			await client.generate(REQUEST)
	finally:
		await client.aclose()
	assert excinfo.value.code == "unavailable"


@pytest.mark.asyncio
async def test_null_text_part_is_unavailable(configured):
	body = {"candidates": [{"content": {"parts": [{"text": None}]}}]}
	transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
	client = TextGenerationClient(transport=transport)
	try:
		with pytest.raises(GenerationUnavailable) as excinfo:
			await client.generate(REQUEST)
	finally:
		await client.aclose()
	assert excinfo.value.code == "unavailable"


@pytest.mark.asyncio
async def test_null_fallback_content_reports_primary_error(configured, monkeypatch):
	monkeypatch.setattr(settings, "fallback_api_key", "fallback-key")
	monkeypatch.setattr(settings, "fallback_base_url", "https://fallback.example/v1/chat/completions")

	def handler(request):
		if request.url.host == "fallback.example":
			return httpx.Response(200, json={"choices": [{"message": {"content": None}}]})
		return httpx.Response(500)

	client = TextGenerationClient(transport=httpx.MockTransport(handler))
	try:
		with pytest.raises(GenerationUnavailable) as excinfo:
			await client.generate(REQUEST)
	finally:
		await client.aclose()
	assert excinfo.value.code == "unavailable"


def test_missing_key_is_reported_as_credentials(monkeypatch):
	monkeypatch.setattr(settings, "gemini_api_key", None)
	with pytest.raises(GenerationUnavailable) as excinfo:
		TextGenerationClient()
	assert excinfo.value.code == "invalid_credentials"


@pytest.mark.asyncio
async def test_fallback_is_used_when_primary_fails(configured, monkeypatch):
	monkeypatch.setattr(settings, "fallback_api_key", "fallback-key")
	monkeypatch.setattr(settings, "fallback_model", "fallback-test")
	monkeypatch.setattr(settings, "fallback_base_url", "https://fallback.example/v1/chat/completions")

	def handler(request):
		if request.url.host == "fallback.example":
			assert request.headers["Authorization"] == "Bearer fallback-key"
			body = json.loads(request.content)
			assert body["messages"][0] == {"role": "system", "content": REQUEST.system_instruction}
			assert body["max_tokens"] == 350
			return httpx.Response(200, json={"choices": [{"message": {"content": "Texte de secours"}}]})
		return httpx.Response(503)

	client = TextGenerationClient(transport=httpx.MockTransport(handler))
	try:
		result = await client.generate(REQUEST)
	finally:
		await client.aclose()

	assert (result.text, result.model) == ("Texte de secours", "fallback-test")


@pytest.mark.asyncio
async def test_failed_fallback_reports_primary_error(configured, monkeypatch):
	monkeypatch.setattr(settings, "fallback_api_key", "fallback-key")
	monkeypatch.setattr(settings, "fallback_base_url", "https://fallback.example/v1/chat/completions")

	def handler(request):
		if request.url.host == "fallback.example":
			return httpx.Response(500)
		return httpx.Response(429)

	client = TextGenerationClient(transport=httpx.MockTransport(handler))
	try:
		with pytest.raises(GenerationUnavailable) as excinfo:
			await client.generate(REQUEST)
	finally:
		await client.aclose()
	assert excinfo.value.code == "rate_limited"


def test_error_code_for_non_http_errors():
	assert error_code_for(httpx.ConnectTimeout("timed out")) == "unavailable"
	assert error_code_for(KeyError("candidates")) == "unavailable"
