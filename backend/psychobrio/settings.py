from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")
	llm_timeout_seconds: float = Field(default=60.0, validation_alias="LLM_TIMEOUT_SECONDS")

	# OpenAI-compatible chat completions fallback (optional)
	fallback_api_key: str | None = Field(default=None, validation_alias="FALLBACK_LLM_API_KEY")
	fallback_model: str = Field(default="gpt-4o-mini", validation_alias="FALLBACK_LLM_MODEL")
	fallback_base_url: str = Field(default="https://api.openai.com/v1/chat/completions", validation_alias="FALLBACK_LLM_BASE_URL")

	# Generation parameters
	theme_temperature: float = Field(default=0.3, validation_alias="THEME_TEMPERATURE")
	theme_max_output_tokens: int = Field(default=350, validation_alias="THEME_MAX_OUTPUT_TOKENS")
	synthesis_temperature: float = Field(default=0.3, validation_alias="SYNTHESIS_TEMPERATURE")
	synthesis_max_output_tokens: int = Field(default=400, validation_alias="SYNTHESIS_MAX_OUTPUT_TOKENS")
	notes_temperature: float = Field(default=0.3, validation_alias="NOTES_TEMPERATURE")
	notes_max_output_tokens: int = Field(default=500, validation_alias="NOTES_MAX_OUTPUT_TOKENS")

	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	# Seed administrator, created at startup when both are set
	seed_username: str | None = Field(default=None, validation_alias="SEED_USERNAME")
	seed_password_plain: str | None = Field(default=None, validation_alias="SEED_PASSWORD")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Report text
	report_missing_conclusion: str = Field(
		default="Aucune conclusion disponible pour ce thème.",
		validation_alias="REPORT_MISSING_CONCLUSION",
	)

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
