"""Runtime configuration, read from NEGOTIATION_* environment variables or .env."""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .permissions import Role, Viewer


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="NEGOTIATION_", env_file=".env", extra="ignore")

    api_url: str = "http://localhost:3001"
    access_token: Optional[str] = None
    timeout_s: float = 20.0

    # Identity of the signed-in user; normally supplied by the auth layer.
    user_id: Optional[str] = None
    role: Role = Role.client

    def viewer(self) -> Viewer:
        if not self.user_id:
            raise ValueError("NEGOTIATION_USER_ID is not set")
        return Viewer(user_id=self.user_id, role=self.role)


def load_settings(**overrides) -> Settings:
    return Settings(**overrides)
