from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./feedback.db"
    log_level: str = "INFO"
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    # Restaurant locations accepted by the survey and the filters
    locations: Annotated[list[str], NoDecode] = ["brickell", "wynwood"]

    # Admin authorization (identity is resolved upstream and forwarded in a header)
    auth_header: str = "X-Authenticated-User"
    admin_emails: Annotated[list[str], NoDecode] = []

    # Summarisation / sentiment models
    openai_api_key: str = ""
    insights_model: str = "gpt-4.1-mini"
    sentiment_model: str = "gpt-4o-mini"
    insights_max_tokens: int = 1200

    # Outbound email
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_use_tls: bool = True
    smtp_username: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = ""

    # Outbound SMS alerts
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""
    alert_to_number: str = ""

    @field_validator("locations", "admin_emails", "cors_origins", mode="before")
    @classmethod
    def _split_csv(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_username and self.smtp_password and self.from_email)

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_from_number
            and self.alert_to_number
        )


settings = Settings()
