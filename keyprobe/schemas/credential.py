from typing import List

from pydantic import BaseModel, ConfigDict, Field


EXPECTED_PREFIX = "sk-"
MIN_LENGTH = 20


class Credential(BaseModel):
    """API key supplied once per run. Only the masked form is ever logged."""
    model_config = ConfigDict(frozen=True)

    value: str = Field("", repr=False)

    @classmethod
    def of(cls, value) -> "Credential":
        if isinstance(value, Credential):
            return value
        return cls(value=value or "")

    @property
    def is_empty(self) -> bool:
        return not self.value

    @property
    def masked(self) -> str:
        if len(self.value) <= 8:
            return "*" * len(self.value)
        return f"{self.value[:3]}...{self.value[-4:]}"

    def __str__(self) -> str:
        return self.masked


class FormatCheck(BaseModel):
    """Advisory result of checking the credential shape; never blocks the probes."""
    model_config = ConfigDict(frozen=True)

    is_empty: bool
    has_expected_prefix: bool
    length: int
    warnings: List[str] = Field(default_factory=list)

    @property
    def is_too_short(self) -> bool:
        return self.length < MIN_LENGTH
