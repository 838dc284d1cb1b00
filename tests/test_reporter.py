import io
import json

from keyprobe.core.exceptions.exceptions import ProtocolError, TransportError
from keyprobe.schemas.probe import CHAT_PROBE, SPEECH_PROBE, ProbeResult, VerificationReport
from keyprobe.services.reporter import ConsoleReporter
from keyprobe.services.verifier_service import CredentialVerifier

from conftest import VALID_KEY


def make_report(*results, interrupted=False):
    return VerificationReport(
        credential="sk-...ghij",
        format_check=CredentialVerifier().validate_format(VALID_KEY),
        results=list(results),
        interrupted=interrupted,
    )


def render(report):
    out = io.StringIO()
    ConsoleReporter(out).render(report)
    return out.getvalue()


def test_successful_run_lists_every_section():
    text = render(make_report(
        ProbeResult.succeeded(CHAT_PROBE, target="gpt-4o-mini", text="OK"),
        ProbeResult.succeeded(SPEECH_PROBE, target="tts-1-hd, shimmer", byte_count=4096,
                              audio_format="PCM audio (24kHz)"),
    ))
    assert "1️⃣  Checking API Key format..." in text
    assert "API Key found (length: 28)" in text
    assert "2️⃣  Testing Chat Completions (gpt-4o-mini)..." in text
    assert "📤 Response: OK" in text
    assert "3️⃣  Testing Text-to-Speech (tts-1-hd, shimmer)..." in text
    assert "Received 4096 bytes of PCM audio (24kHz)" in text
    assert "SKIPPED: Requires audio file" in text
    assert "✅ OpenAI API Integration Test Complete!" in text


def test_failures_show_kind_and_reason():
    text = render(make_report(
        ProbeResult.failed(CHAT_PROBE, ProtocolError(429, '{"error":"rate limited"}'), target="gpt-4o-mini"),
        ProbeResult.failed(SPEECH_PROBE, TransportError("connection refused"), target="tts-1-hd, shimmer"),
    ))
    assert '❌ FAILED (protocol): API error (status 429): {"error":"rate limited"}' in text
    assert "❌ FAILED (transport): API request failed: connection refused" in text
    assert "Complete with failures" in text


def test_cancelled_run_is_marked_interrupted():
    text = render(make_report(
        ProbeResult.succeeded(CHAT_PROBE, target="gpt-4o-mini", text="OK"),
        ProbeResult.cancelled(SPEECH_PROBE, target="tts-1-hd, shimmer"),
        interrupted=True,
    ))
    assert "CANCELLED" in text
    assert "Interrupted" in text


def test_missing_credential_explains_how_to_set_it():
    out = io.StringIO()
    ConsoleReporter(out).missing_credential()
    assert "OPENAI_API_KEY not found" in out.getvalue()
    assert "export OPENAI_API_KEY=" in out.getvalue()


def test_json_output_is_machine_readable():
    out = io.StringIO()
    ConsoleReporter(out).render_json(make_report(
        ProbeResult.succeeded(CHAT_PROBE, target="gpt-4o-mini", text="OK"),
        ProbeResult.failed(SPEECH_PROBE, ProtocolError(500, "boom"), target="tts-1-hd, shimmer"),
    ))
    payload = json.loads(out.getvalue())
    assert payload["ok"] is False
    assert payload["credential"] == "sk-...ghij"
    assert payload["results"][0]["status"] == "success"
    assert payload["results"][1]["kind"] == "protocol"
    assert payload["results"][1]["status_code"] == 500
