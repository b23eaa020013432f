import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass

from voice_assistant.config import VoiceAssistantConfig

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_startup_checks(config: VoiceAssistantConfig) -> list[HealthCheckResult]:
    results = [
        _check_audio_device(config),
        _check_api_keys(config),
        _check_completion_reachable(config),
    ]

    passed = sum(1 for r in results if r.passed)

    logger.info("Health check: %d/%d passed", passed, len(results))
    for result in results:
        level = logging.INFO if result.passed else logging.WARNING
        symbol = "OK" if result.passed else "FAIL"
        logger.log(level, "  [%s] %s: %s", symbol, result.name, result.detail)

    return results


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    critical_checks = {"audio_device", "api_keys"}
    return any(not r.passed and r.name in critical_checks for r in results)


def _check_audio_device(config: VoiceAssistantConfig) -> HealthCheckResult:
    name = "audio_device"
    try:
        import sounddevice as sd

        device_name = config.capture_device
        for dev in sd.query_devices():
            if device_name and device_name.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                return HealthCheckResult(name=name, passed=True, detail=f"Device '{device_name}' found")

        try:
            default = sd.query_devices(kind="input")
        except sd.PortAudioError:
            return HealthCheckResult(name=name, passed=False, detail="No input devices available")
        return HealthCheckResult(
            name=name,
            passed=True,
            detail=f"'{device_name}' not in PortAudio (will use PIPEWIRE_NODE), default input: {default['name']}",
        )
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))


def _check_api_keys(config: VoiceAssistantConfig) -> HealthCheckResult:
    name = "api_keys"
    missing = []

    if not config.deepgram_key():
        missing.append(f"deepgram ({config.deepgram_api_key_file or 'not configured'})")

    if config.tts_engine == "openai" and not config.read_secret(config.openai_api_key_file):
        missing.append(f"openai ({config.openai_api_key_file or 'not configured'})")

    if config.completion_engine == "anthropic" and not config.read_secret(config.anthropic_api_key_file):
        missing.append(f"anthropic ({config.anthropic_api_key_file or 'not configured'})")

    if missing:
        return HealthCheckResult(name=name, passed=False, detail=f"Missing: {', '.join(missing)}")

    return HealthCheckResult(name=name, passed=True, detail="All API keys loaded")


def _check_completion_reachable(config: VoiceAssistantConfig) -> HealthCheckResult:
    name = "completion"
    if config.completion_engine != "http":
        return HealthCheckResult(name=name, passed=True, detail=f"Skipped (engine={config.completion_engine})")
    parts = urllib.parse.urlsplit(config.completion_url)
    base_url = f"{parts.scheme}://{parts.netloc}/"
    try:
        req = urllib.request.Request(base_url, method="GET")
        req.add_header("User-Agent", "voice-assistant/healthcheck")
        response = urllib.request.urlopen(req, timeout=3)
        return HealthCheckResult(name=name, passed=True, detail=f"Reachable ({response.status})")
    except urllib.error.HTTPError as exc:
        return HealthCheckResult(name=name, passed=True, detail=f"Reachable ({exc.code})")
    except urllib.error.URLError as exc:
        return HealthCheckResult(name=name, passed=False, detail=f"Unreachable: {exc.reason}")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=f"Unreachable: {exc}")
