import json
import sys
from pathlib import Path
from typing import Optional, TextIO

from keyprobe.schemas.credential import FormatCheck
from keyprobe.schemas.probe import (
    CHAT_PROBE,
    SPEECH_PROBE,
    ProbeResult,
    ProbeStatus,
    VerificationReport,
)


RULE = "━" * 52


class ConsoleReporter:
    """Human-readable rendering of a verification run.

    Section layout:
    - 1. API key format
    - 2. Chat Completions
    - 3. Text-to-Speech
    - 4. Speech-to-Text, always skipped since it needs an audio file
    """

    STT_MODEL = "whisper-1"

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def _write(self, line: str = "") -> None:
        self.stream.write(line + "\n")

    def env_loaded(self, path: Optional[Path]) -> None:
        if path is not None:
            self._write(f"✅ Loaded .env file ({path})")
        else:
            self._write("⚠️  .env file not found, checking environment variables only")

    def missing_credential(self) -> None:
        self._write("❌ ERROR: OPENAI_API_KEY not found")
        self._write()
        self._write("Checked:")
        self._write("  - Environment variables")
        self._write("  - .env file in the current, parent and backend/ directories")
        self._write()
        self._write("Set it with: export OPENAI_API_KEY=sk-your-key-here")
        self._write("or add this line to a .env file:")
        self._write("  OPENAI_API_KEY=sk-your-key-here")

    def configuration_error(self, message: str) -> None:
        self._write(f"❌ ERROR: {message}")

    def header(self) -> None:
        self._write("🔍 Testing OpenAI API Integration...")
        self._write(RULE)
        self._write()

    def format_check(self, check: FormatCheck) -> None:
        self._write("1️⃣  Checking API Key format...")
        self._write(f"   ✅ API Key found (length: {check.length})")
        if check.has_expected_prefix:
            self._write("   ✅ API Key format looks correct (starts with 'sk-')")
        for warning in check.warnings:
            self._write(f"   ⚠️  WARNING: {warning}")
        self._write()

    def probe(self, number: int, title: str, result: ProbeResult) -> None:
        self._write(f"{number}️⃣  Testing {title} ({result.target})...")
        if result.status == ProbeStatus.SUCCESS:
            if result.probe == CHAT_PROBE:
                self._write(f"   📤 Response: {result.text}")
            elif result.byte_count is not None:
                self._write(f"   📤 Received {result.byte_count} bytes of {result.audio_format or 'audio'}")
            self._write(f"   ✅ SUCCESS: {title} API working")
        elif result.status == ProbeStatus.CANCELLED:
            self._write("   ⏹️  CANCELLED")
        else:
            self._write(f"   ❌ FAILED ({result.kind.value}): {result.reason}")
        self._write()

    def speech_to_text_skipped(self, number: int) -> None:
        self._write(f"{number}️⃣  Testing Speech-to-Text API ({self.STT_MODEL})...")
        self._write("   ⏭️  SKIPPED: Requires audio file (can test manually)")
        self._write()

    def summary(self, report: VerificationReport) -> None:
        self._write(RULE)
        if report.interrupted:
            self._write("⏹️  OpenAI API Integration Test Interrupted")
        elif report.ok:
            self._write("✅ OpenAI API Integration Test Complete!")
        else:
            self._write("❌ OpenAI API Integration Test Complete with failures")
        self._write()
        self._write("📝 Summary:")
        self._write("   - API Key: ✅ Found")
        for result in report.results:
            self._write(f"   - {result.probe} ({result.target}): {self._badge(result)}")
        self._write(f"   - STT ({self.STT_MODEL}): Manual test required")

    def render(self, report: VerificationReport) -> None:
        self.format_check(report.format_check)
        titles = {CHAT_PROBE: "Chat Completions", SPEECH_PROBE: "Text-to-Speech"}
        number = 2
        for result in report.results:
            self.probe(number, titles.get(result.probe, result.probe), result)
            number += 1
        self.speech_to_text_skipped(number)
        self.summary(report)

    def render_json(self, report: VerificationReport) -> None:
        payload = report.model_dump(mode="json")
        payload["ok"] = report.ok
        self._write(json.dumps(payload, indent=2))

    def _badge(self, result: ProbeResult) -> str:
        if result.ok:
            return "✅ OK"
        if result.status == ProbeStatus.CANCELLED:
            return "⏹️  cancelled"
        return f"❌ {result.kind.value} error"
