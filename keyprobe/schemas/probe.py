from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from keyprobe.core.exceptions.exceptions import FailureKind, ProbeError
from keyprobe.schemas.credential import FormatCheck


CHAT_PROBE = "chat"
SPEECH_PROBE = "speech"


class ProbeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class ProbeRequest(BaseModel):
    """One upstream call: endpoint, fixed payload and timeout bound."""
    model_config = ConfigDict(frozen=True)

    probe: str
    endpoint: str
    payload: Dict[str, Any]
    timeout: float
    accept: str = "application/json"


class ChatProbeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = "gpt-4o-mini"
    system_prompt: str = "You are a helpful assistant. Reply with just 'OK' to confirm you're working."
    user_prompt: str = "Say OK if you can hear me."
    max_tokens: int = 10
    endpoint: str = "/chat/completions"

    @property
    def target(self) -> str:
        return self.model

    def build_request(self, timeout: float) -> ProbeRequest:
        return ProbeRequest(
            probe=CHAT_PROBE,
            endpoint=self.endpoint,
            payload={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": self.user_prompt},
                ],
                "max_tokens": self.max_tokens,
            },
            timeout=timeout,
        )


class SpeechProbeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = "tts-1-hd"
    input: str = "Hello, this is a test of OpenAI TTS API."
    voice: str = "shimmer"
    response_format: str = "pcm"
    speed: float = 1.0
    # pcm output from the speech endpoint is 24kHz, 16-bit mono
    sample_rate: int = 24000
    endpoint: str = "/audio/speech"

    @property
    def target(self) -> str:
        return f"{self.model}, {self.voice}"

    @property
    def audio_description(self) -> str:
        label = f"{self.response_format.upper()} audio"
        if self.response_format == "pcm":
            label += f" ({self.sample_rate // 1000}kHz)"
        return label

    def build_request(self, timeout: float) -> ProbeRequest:
        return ProbeRequest(
            probe=SPEECH_PROBE,
            endpoint=self.endpoint,
            payload={
                "model": self.model,
                "input": self.input,
                "voice": self.voice,
                "response_format": self.response_format,
                "speed": self.speed,
            },
            timeout=timeout,
            accept="*/*",
        )


class ProbeResult(BaseModel):
    """Outcome of one probe: Success(metadata), Failure(kind, reason) or Cancelled."""
    model_config = ConfigDict(frozen=True)

    probe: str
    target: str = ""
    status: ProbeStatus
    kind: Optional[FailureKind] = None
    reason: Optional[str] = None
    status_code: Optional[int] = None
    body: Optional[str] = None
    text: Optional[str] = None
    byte_count: Optional[int] = None
    audio_format: Optional[str] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == ProbeStatus.SUCCESS

    @classmethod
    def succeeded(cls, probe: str, target: str = "", elapsed: float = 0.0, **metadata) -> "ProbeResult":
        return cls(probe=probe, target=target, status=ProbeStatus.SUCCESS, elapsed=elapsed, **metadata)

    @classmethod
    def failed(cls, probe: str, error: ProbeError, target: str = "", elapsed: float = 0.0) -> "ProbeResult":
        return cls(
            probe=probe,
            target=target,
            status=ProbeStatus.FAILURE,
            kind=error.kind,
            reason=error.message,
            status_code=getattr(error, "status_code", None),
            body=getattr(error, "body", None),
            elapsed=elapsed,
        )

    @classmethod
    def cancelled(cls, probe: str, target: str = "") -> "ProbeResult":
        return cls(probe=probe, target=target, status=ProbeStatus.CANCELLED, reason="cancelled")


class VerificationReport(BaseModel):
    credential: str = Field(..., description="Masked credential")
    format_check: FormatCheck
    results: List[ProbeResult] = Field(default_factory=list)
    interrupted: bool = False

    @property
    def ok(self) -> bool:
        return bool(self.results) and all(r.ok for r in self.results)

    def result_for(self, probe: str) -> Optional[ProbeResult]:
        for result in self.results:
            if result.probe == probe:
                return result
        return None
