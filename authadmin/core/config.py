import json
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from authadmin.core.rbac.roles import DEFAULT_ROLE_POLICY


DEFAULT_BANNED_USER_MESSAGE = (
    "You have been banned from this application. "
    "Please contact support if you believe this is an error."
)


class Settings(BaseSettings):
    # App
    app_name: str = "authadmin"
    debug: bool = False
    base_url: str = "http://localhost:8000"
    # Where OAuth callback flows send banned users; defaults to {base_url}/error
    error_url: Optional[str] = None

    # Database
    database_url: str = "sqlite:///./authadmin.db"

    # Security
    secret_key: str = "dev-secret-key-change-in-production"
    cookie_prefix: str = "authadmin"
    secure_cookies: bool = False
    session_expires_in: int = 60 * 60 * 24 * 7  # seconds

    # Roles
    default_role: str = "user"
    admin_roles: str = "admin"
    admin_user_ids: str = ""
    role_policy: Dict[str, Dict[str, List[str]]] = DEFAULT_ROLE_POLICY

    # Bans
    banned_user_message: str = DEFAULT_BANNED_USER_MESSAGE
    default_ban_reason: str = "No reason"
    default_ban_expires_in: Optional[int] = None  # seconds, None = permanent

    # Impersonation
    impersonation_session_duration: int = 60 * 60  # seconds

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"
    log_to_file: bool = False

    model_config = SettingsConfigDict(
        env_prefix="AUTHADMIN_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("role_policy", mode="before")
    @classmethod
    def _parse_role_policy(cls, value):
        if isinstance(value, str):
            return json.loads(value)
        return value

    @property
    def admin_roles_list(self) -> list[str]:
        return [role.strip() for role in self.admin_roles.split(",") if role.strip()]

    @property
    def admin_user_ids_list(self) -> list[str]:
        return [uid.strip() for uid in self.admin_user_ids.split(",") if uid.strip()]

    @property
    def ban_error_url(self) -> str:
        return self.error_url or f"{self.base_url.rstrip('/')}/error"


@lru_cache
def get_settings() -> Settings:
    return Settings()
