from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, SecretStr

TESTNET_URI = "wss://test.deribit.com/ws/api/v2"

DEFAULT_SCOPE = (
    "block_rfq:read_write block_trade:read_write trade:read_write "
    "custody:read_write account:read_write wallet:read_write mainaccount"
)


class ConnectionSettings(BaseModel):
    uri: str = TESTNET_URI
    heartbeat: float | None = Field(default=None, gt=0)
    close_timeout: float = Field(default=5.0, gt=0)
    verify_ssl: bool = True

    model_config = {"extra": "forbid"}


class SessionSettings(BaseModel):
    legacy_routing: bool = False
    auth_timeout: float | None = Field(default=None, gt=0)
    response_timeout: float | None = Field(default=None, gt=0)
    scope: str = DEFAULT_SCOPE

    model_config = {"extra": "forbid"}


class Credentials(BaseModel):
    client_id: str
    client_secret: SecretStr

    model_config = {"extra": "forbid"}


class Settings(BaseModel):
    env: str = "dev"
    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    credentials: Credentials | None = None

    model_config = {"extra": "forbid"}

    def redacted(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        creds = data.get("credentials")
        if isinstance(creds, dict) and "client_secret" in creds:
            creds["client_secret"] = "***"
        return data
