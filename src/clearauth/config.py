"""Configuration for the authentication client.

Values come from the environment (``AuthConfig.from_env``) or are passed in
directly. Validation happens once, here; the handshake assumes a well-formed
config.
"""
from __future__ import annotations

import json
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from clearauth.protocol.constants import (
    ADDRESS_PATTERN, DEFAULT_APP_NAME, DEFAULT_DOMAIN_NAME, DEFAULT_ENDPOINT,
    DEFAULT_SCOPE, DEFAULT_SESSION_EXPIRY_S, ZERO_ADDRESS,
)
from clearauth.protocol.errors import ConfigError
from clearauth.protocol.models import Allowance

ENV_VARS = {
    "wallet_address": "WALLET_ADDRESS",
    "private_key": "PRIVATE_KEY",
    "participant_address": "PARTICIPANT_ADDRESS",
    "app_name": "APP_NAME",
    "endpoint": "WS_ENDPOINT",
    "session_expiry": "SESSION_EXPIRY",
    "scope": "SCOPE",
    "application": "APPLICATION_ADDRESS",
    "allowances": "ALLOWANCES",
    "domain_name": "DOMAIN_NAME",
    "handshake_timeout": "HANDSHAKE_TIMEOUT",
}
REQUIRED = ("wallet_address", "private_key")


class AuthConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    wallet_address: str = Field(pattern=ADDRESS_PATTERN)
    private_key: SecretStr
    participant_address: Optional[str] = Field(default=None, pattern=ADDRESS_PATTERN)
    app_name: str = Field(default=DEFAULT_APP_NAME, min_length=1)
    endpoint: str = DEFAULT_ENDPOINT
    session_expiry: int = Field(default=DEFAULT_SESSION_EXPIRY_S, gt=0)
    scope: str = DEFAULT_SCOPE
    application: str = Field(default=ZERO_ADDRESS, pattern=ADDRESS_PATTERN)
    allowances: tuple[Allowance, ...] = ()
    domain_name: str = Field(default=DEFAULT_DOMAIN_NAME, min_length=1)
    handshake_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("endpoint")
    @classmethod
    def _websocket_scheme(cls, v: str) -> str:
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("endpoint must be a ws:// or wss:// URL")
        return v

    @model_validator(mode="before")
    @classmethod
    def _default_participant(cls, data):
        if isinstance(data, dict) and not data.get("participant_address"):
            data = {**data, "participant_address": data.get("wallet_address")}
        return data

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "AuthConfig":
        env = os.environ if environ is None else environ
        missing = [ENV_VARS[k] for k in REQUIRED if not env.get(ENV_VARS[k]) and k not in overrides]
        if missing:
            raise ConfigError(f"missing required environment variables: {', '.join(missing)}")

        values: dict = {}
        for field_name, var in ENV_VARS.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            if field_name == "allowances":
                try:
                    values[field_name] = json.loads(raw)
                except ValueError as e:
                    raise ConfigError(f"{var} is not valid JSON") from e
            else:
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.build(**values)

    @classmethod
    def build(cls, **values) -> "AuthConfig":
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise ConfigError(f"invalid configuration: {', '.join(fields) or e}") from e
