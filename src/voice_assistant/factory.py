import logging

from voice_assistant.config import VoiceAssistantConfig
from voice_assistant.adapters.unix_control import UnixSocketControlServer
from voice_assistant.domain.errors import ConfigError
from voice_assistant.domain.frame_relay import FrameRelay
from voice_assistant.domain.session import SessionOrchestrator
from voice_assistant.ports.audio import AudioCapturePort, AudioPlaybackPort
from voice_assistant.ports.completion import CompletionPort
from voice_assistant.ports.synthesizer import SynthesizerPort
from voice_assistant.ports.transcriber import TranscriberPort

logger = logging.getLogger(__name__)


def create_capture(config: VoiceAssistantConfig) -> AudioCapturePort:
    from voice_assistant.adapters.sounddevice_audio import SounddeviceCapture

    return SounddeviceCapture(
        device=config.capture_device,
        sample_rate=config.sample_rate,
        frame_duration_ms=config.frame_duration_ms,
        gain=config.capture_gain,
    )


def create_playback(config: VoiceAssistantConfig) -> AudioPlaybackPort:
    from voice_assistant.adapters.sounddevice_audio import SounddevicePlayback

    return SounddevicePlayback(sample_rate=config.playback_sample_rate)


def create_transcriber(config: VoiceAssistantConfig) -> TranscriberPort:
    from voice_assistant.adapters.deepgram_stt import DeepgramStreamingTranscriber

    return DeepgramStreamingTranscriber()


def create_completion(config: VoiceAssistantConfig) -> CompletionPort:
    if config.completion_engine == "anthropic":
        from voice_assistant.adapters.anthropic_llm import AnthropicCompletion

        anthropic_api_key = config.read_secret(config.anthropic_api_key_file)
        if not anthropic_api_key:
            raise ConfigError("Anthropic API key is missing")
        return AnthropicCompletion(
            api_key=anthropic_api_key,
            model=config.model,
            system_prompt=config.system_prompt,
        )

    from voice_assistant.adapters.http_completion import HttpCompletion

    return HttpCompletion(
        url=config.completion_url,
        timeout_seconds=config.completion_timeout_seconds,
    )


def create_synthesizer(config: VoiceAssistantConfig) -> SynthesizerPort:
    if config.tts_engine == "openai":
        from voice_assistant.adapters.openai_tts import OpenAITtsSynthesizer

        openai_api_key = config.read_secret(config.openai_api_key_file)
        if not openai_api_key:
            raise ConfigError("OpenAI API key is missing")
        return OpenAITtsSynthesizer(api_key=openai_api_key, voice=config.tts_voice)

    from voice_assistant.adapters.deepgram_tts import DeepgramSpeechSynthesizer

    return DeepgramSpeechSynthesizer(
        api_key=config.deepgram_key(),
        model=config.tts_model,
        sample_rate=config.playback_sample_rate,
    )


def create_session(config: VoiceAssistantConfig) -> SessionOrchestrator:
    return SessionOrchestrator(
        capture=create_capture(config),
        playback=create_playback(config),
        transcriber=create_transcriber(config),
        completion=create_completion(config),
        synthesizer=create_synthesizer(config),
        transcription_config=config.transcription_config(),
        relay=FrameRelay(max_frames=config.relay_max_frames),
        keepalive_interval_seconds=config.keepalive_interval_seconds,
        keepalive_max_misses=config.keepalive_max_misses,
    )


def create_daemon(
    config: VoiceAssistantConfig,
) -> tuple[SessionOrchestrator, UnixSocketControlServer]:
    session = create_session(config)
    control = UnixSocketControlServer(socket_path=config.socket_path)
    logger.debug(
        "Daemon assembled (completion=%s, tts=%s)", config.completion_engine, config.tts_engine
    )
    return session, control
