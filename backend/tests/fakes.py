from __future__ import annotations
from typing import List, Optional

from psychobrio.llm_client import GenerationRequest, GenerationResult


class FakeGenerator:
	"""Stand-in for the text generation service.

	Returns `texts` in order (then a numbered default), or raises `error`.
	"""

	def __init__(self, texts: Optional[List[str]] = None, error: Optional[Exception] = None, model: str = "fake-model") -> None:
		self.texts = list(texts or [])
		self.error = error
		self.model = model
		self.requests: List[GenerationRequest] = []

	async def generate(self, request: GenerationRequest) -> GenerationResult:
		self.requests.append(request)
		if self.error is not None:
			raise self.error
		text = self.texts.pop(0) if self.texts else f"Texte généré {len(self.requests)}"
		return GenerationResult(text=text, model=self.model)
