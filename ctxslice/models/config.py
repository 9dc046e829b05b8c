"""Application configuration model."""

from typing import Optional

from pydantic import BaseModel, Field


class AppConfig(BaseModel):
    """Settings merged from defaults, ~/.ctxslice/settings.json and the project file."""

    session_file: Optional[str] = Field(
        default=None, description="Override for the sessions document location"
    )
    log_level: str = Field(default="WARNING", description="Root logging level")
    verbose: bool = False
    api_url: Optional[str] = Field(
        default=None, description="Chat completions endpoint used for streaming"
    )
    api_key_env: str = Field(
        default="OPENAI_API_KEY", description="Environment variable holding the API key"
    )
    model: Optional[str] = None

    def effective_log_level(self) -> str:
        return "DEBUG" if self.verbose else self.log_level.upper()
