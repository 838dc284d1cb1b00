import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Tuple

import requests

from keyprobe.clients.base_http_client import HTTPResult
from keyprobe.clients.openai_client import OpenAIClient
from keyprobe.config.settings import DEFAULT_BASE_URL, Settings
from keyprobe.core.exceptions.exceptions import (
    ConfigurationError,
    DecodingError,
    ProbeError,
    SemanticError,
)
from keyprobe.schemas.credential import EXPECTED_PREFIX, MIN_LENGTH, Credential, FormatCheck
from keyprobe.schemas.probe import (
    CHAT_PROBE,
    SPEECH_PROBE,
    ChatProbeConfig,
    ProbeResult,
    SpeechProbeConfig,
    VerificationReport,
)
from keyprobe.utils.log import app_logger


class CredentialVerifier:
    """Checks whether a credential can authenticate against the chat and speech endpoints.

    - `validate_format` is advisory and never blocks the probes.
    - Each probe is one attempt and always returns a ProbeResult; every
      ProbeError is converted into a Failure at the probe boundary.
    - `verify` refuses an empty credential before any request is made.
    """

    def __init__(
        self,
        chat_config: Optional[ChatProbeConfig] = None,
        speech_config: Optional[SpeechProbeConfig] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        session_factory: Optional[Callable[[], requests.Session]] = None,
    ):
        if not timeout > 0:
            raise ConfigurationError(f"timeout must be positive, got {timeout:g}")
        self.chat_config = chat_config or ChatProbeConfig()
        self.speech_config = speech_config or SpeechProbeConfig()
        self.base_url = base_url
        self.timeout = timeout
        self.session_factory = session_factory

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "CredentialVerifier":
        return cls(
            chat_config=settings.chat_config(),
            speech_config=settings.speech_config(),
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.PROBE_TIMEOUT,
            **kwargs,
        )

    def validate_format(self, credential) -> FormatCheck:
        value = Credential.of(credential).value
        length = len(value)
        has_prefix = value.startswith(EXPECTED_PREFIX)

        warnings = []
        if not value:
            warnings.append("API key is not configured")
        if length < MIN_LENGTH:
            warnings.append("API key seems too short")
        if value and not has_prefix:
            warnings.append(f"API key doesn't start with '{EXPECTED_PREFIX}'")
        if value and value != value.strip():
            warnings.append("API key has leading or trailing whitespace")

        return FormatCheck(
            is_empty=not value,
            has_expected_prefix=has_prefix,
            length=length,
            warnings=warnings,
        )

    def make_client(self, credential: Credential) -> OpenAIClient:
        session = self.session_factory() if self.session_factory else None
        return OpenAIClient(credential, base_url=self.base_url, timeout=self.timeout, session=session)

    @contextmanager
    def _client_for(self, credential: Credential, client: Optional[OpenAIClient]):
        # a caller-owned client is shared and left open
        if client is not None:
            yield client
            return
        own = self.make_client(credential)
        try:
            yield own
        finally:
            own.close()

    def probe_chat_completion(self, credential, client: Optional[OpenAIClient] = None) -> ProbeResult:
        credential = Credential.of(credential)
        target = self.chat_config.target
        if credential.is_empty:
            return ProbeResult.failed(CHAT_PROBE, ConfigurationError("credential is empty"), target=target)

        request = self.chat_config.build_request(self.timeout)
        app_logger.info("probe.chat.start", model=self.chat_config.model, credential=credential.masked)
        started = time.monotonic()
        try:
            with self._client_for(credential, client) as c:
                response = c.send(request)
            text = self._extract_reply(response)
        except ProbeError as e:
            return self._failure(CHAT_PROBE, target, e, started)

        elapsed = time.monotonic() - started
        app_logger.info("probe.chat.success", reply=text, elapsed=round(elapsed, 3))
        return ProbeResult.succeeded(CHAT_PROBE, target=target, elapsed=elapsed, text=text)

    def probe_speech_synthesis(self, credential, client: Optional[OpenAIClient] = None) -> ProbeResult:
        credential = Credential.of(credential)
        target = self.speech_config.target
        if credential.is_empty:
            return ProbeResult.failed(SPEECH_PROBE, ConfigurationError("credential is empty"), target=target)

        request = self.speech_config.build_request(self.timeout)
        app_logger.info("probe.speech.start", model=self.speech_config.model,
                        voice=self.speech_config.voice, credential=credential.masked)
        started = time.monotonic()
        try:
            with self._client_for(credential, client) as c:
                response = c.send(request)
            if not response.content:
                raise SemanticError("no audio data received")
        except ProbeError as e:
            return self._failure(SPEECH_PROBE, target, e, started)

        elapsed = time.monotonic() - started
        byte_count = len(response.content)
        app_logger.info("probe.speech.success", bytes=byte_count, elapsed=round(elapsed, 3))
        return ProbeResult.succeeded(
            SPEECH_PROBE,
            target=target,
            elapsed=elapsed,
            byte_count=byte_count,
            audio_format=self.speech_config.audio_description,
        )

    def verify(self, credential, parallel: bool = False) -> VerificationReport:
        """Run the format check and both probes with one shared client.

        Results are always ordered chat, speech. An interrupt aborts the
        in-flight responses and marks every unfinished probe as cancelled.
        """
        credential = Credential.of(credential)
        check = self.validate_format(credential)
        if check.is_empty:
            app_logger.error("verify.no_credential")
            raise ConfigurationError("OPENAI_API_KEY environment variable not set")

        for warning in check.warnings:
            app_logger.warning("verify.format_warning", warning=warning, length=check.length)

        probes = [
            (CHAT_PROBE, self.chat_config.target, self.probe_chat_completion),
            (SPEECH_PROBE, self.speech_config.target, self.probe_speech_synthesis),
        ]

        client = self.make_client(credential)
        try:
            if parallel:
                results, interrupted = self._run_parallel(credential, client, probes)
            else:
                results, interrupted = self._run_sequential(credential, client, probes)
        finally:
            client.close()

        report = VerificationReport(
            credential=credential.masked,
            format_check=check,
            results=results,
            interrupted=interrupted,
        )
        app_logger.info("verify.done", ok=report.ok, interrupted=interrupted)
        return report

    def _run_sequential(self, credential, client, probes) -> Tuple[List[ProbeResult], bool]:
        results = []
        for index, (name, target, probe) in enumerate(probes):
            try:
                results.append(probe(credential, client=client))
            except KeyboardInterrupt:
                app_logger.warning("verify.interrupted", probe=name)
                results.extend(ProbeResult.cancelled(n, target=t) for n, t, _ in probes[index:])
                return results, True
        return results, False

    def _run_parallel(self, credential, client, probes) -> Tuple[List[ProbeResult], bool]:
        by_name: Dict[str, ProbeResult] = {}
        interrupted = False
        exe = ThreadPoolExecutor(max_workers=len(probes))
        try:
            future_to_probe = {exe.submit(probe, credential, client=client): name for name, _, probe in probes}
            for fut in as_completed(future_to_probe):
                by_name[future_to_probe[fut]] = fut.result()
        except KeyboardInterrupt:
            interrupted = True
            app_logger.warning("verify.interrupted", finished=sorted(by_name))
            client.abort()
        finally:
            exe.shutdown(wait=not interrupted, cancel_futures=interrupted)

        results = [by_name.get(name) or ProbeResult.cancelled(name, target=target) for name, target, _ in probes]
        return results, interrupted

    def _extract_reply(self, response: HTTPResult) -> str:
        try:
            data = response.json()
        except ValueError as e:
            raise DecodingError(str(e)) from e

        if not isinstance(data, dict):
            raise DecodingError(f"expected a JSON object, got {type(data).__name__}")

        choices = data.get("choices")
        if choices is None:
            choices = []
        if not isinstance(choices, list):
            raise DecodingError("'choices' is not a list")
        if not choices:
            raise SemanticError("no choices in response")

        choice = choices[0]
        if not isinstance(choice, dict):
            raise DecodingError("choice is not an object")
        message = choice.get("message")
        if message is None:
            message = {}
        if not isinstance(message, dict):
            raise DecodingError("'message' is not an object")
        content = message.get("content")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise DecodingError("'content' is not a string")
        return content

    def _failure(self, probe: str, target: str, error: ProbeError, started: float) -> ProbeResult:
        elapsed = time.monotonic() - started
        app_logger.warning("probe.failed", probe=probe, kind=error.kind.value, reason=error.message,
                           elapsed=round(elapsed, 3))
        return ProbeResult.failed(probe, error, target=target, elapsed=elapsed)
