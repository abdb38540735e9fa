"""Validated wire records exchanged with the node.

Field aliases are the wire names; Python attribute names spell out what each
field holds. Models are frozen; the stored request is reused for the verify
step.
"""
from __future__ import annotations

from typing import Annotated, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from .constants import ADDRESS_PATTERN, SIGNATURE_PATTERN


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Allowance(_WireModel):
    asset: str = Field(min_length=1)
    amount: str = Field(min_length=1)


class AuthRequest(_WireModel):
    wallet_address: str = Field(alias="wallet", pattern=ADDRESS_PATTERN)
    participant_address: str = Field(alias="participant", pattern=ADDRESS_PATTERN)
    application_name: str = Field(alias="app_name", min_length=1)
    expire_at: int = Field(alias="expire", ge=0)
    scope: str
    application_address: str = Field(alias="application", pattern=ADDRESS_PATTERN)
    allowances: tuple[Allowance, ...] = ()


class VerifyRequest(_WireModel):
    challenge: str = Field(min_length=1)


HexSignature = Annotated[str, StringConstraints(pattern=SIGNATURE_PATTERN)]


class Envelope(_WireModel):
    req: Union[AuthRequest, VerifyRequest]
    sig: tuple[HexSignature, ...] = ()
