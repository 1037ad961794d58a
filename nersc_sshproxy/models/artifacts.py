"""Result models for a certificate issuance run."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidityWindow(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    raw: str = Field(min_length=1)
    valid_from: Optional[str] = None
    valid_to: Optional[str] = None

    def describe(self) -> str:
        return f"valid: {self.raw}"


class KeyArtifactSet(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    private_key_path: Path
    certificate_path: Path
    public_key_path: Path

    def all_paths(self) -> list[Path]:
        return [self.private_key_path, self.certificate_path, self.public_key_path]


class IssueResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    username: str = Field(min_length=1)
    artifacts: KeyArtifactSet
    validity: Optional[ValidityWindow] = None
