from __future__ import annotations
from typing import Optional


class PsychobrioError(Exception):
	"""Base class for failures surfaced to API callers.

	`message` is always safe to show to a user; `kind` is the machine-readable
	name returned next to it.
	"""

	status_code = 500
	kind = "error"

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message

	def to_dict(self) -> dict:
		return {"error": self.kind, "message": self.message}


class NotFound(PsychobrioError):
	status_code = 404
	kind = "not_found"


class ValidationError(PsychobrioError):
	status_code = 422
	kind = "validation_error"


GENERATION_MESSAGES = {
	"rate_limited": "The text generation service is busy. Please try again in a moment.",
	"invalid_credentials": "The text generation service rejected the configured credentials.",
	"unavailable": "The text generation service is currently unavailable.",
}


class GenerationUnavailable(PsychobrioError):
	status_code = 503
	kind = "generation_unavailable"

	def __init__(self, code: str = "unavailable", detail: Optional[str] = None) -> None:
		if code not in GENERATION_MESSAGES:
			code = "unavailable"
		super().__init__(GENERATION_MESSAGES[code])
		self.code = code
		# Provider detail for logs only, never returned to clients
		self.detail = detail

	def to_dict(self) -> dict:
		return {"error": self.kind, "code": self.code, "message": self.message}


class PersistencePartial(PsychobrioError):
	status_code = 500
	kind = "persistence_partial"

	def __init__(self, text: str, message: str = "Text was generated but could not be saved.") -> None:
		super().__init__(message)
		self.text = text

	def to_dict(self) -> dict:
		return {"error": self.kind, "message": self.message, "text": self.text}


class OrphanedReference(PsychobrioError):
	kind = "orphaned_reference"

	def __init__(self, result_id: str, missing: str, missing_id: str) -> None:
		super().__init__(f"result {result_id} references missing {missing} {missing_id}")
		self.result_id = result_id
		self.missing = missing
		self.missing_id = missing_id
