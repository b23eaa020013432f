from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from voice_assistant.ports.transcriber import TranscriptionConfig


class VoiceAssistantConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VOICE_ASSISTANT_")

    deepgram_api_key: str = ""
    deepgram_api_key_file: str = ""

    stt_model: str = "nova-2"
    stt_language: str = "en-US"
    stt_encoding: str = "linear16"
    stt_punctuate: bool = True
    stt_endpointing: bool = True
    stt_interim_results: bool = True

    keepalive_interval_seconds: float = 10.0
    keepalive_max_misses: int = 2

    capture_device: str = "echo-cancel-source"
    capture_gain: float = 1.0
    sample_rate: int = 16000
    channels: int = 1
    frame_duration_ms: int = 32
    relay_max_frames: int = 50

    completion_engine: Literal["http", "anthropic"] = "http"
    completion_url: str = "http://localhost:8000/api/v1/llm"
    completion_timeout_seconds: float = 30.0
    anthropic_api_key_file: str = ""
    model: str = "anthropic/claude-sonnet-4-5"
    system_prompt: str = (
        "This is a voice conversation via microphone and TTS. "
        "Respond concisely, max 3 sentences. "
        "Never include markdown, file paths, code blocks, URLs, or any formatting."
    )

    tts_engine: Literal["deepgram", "openai"] = "deepgram"
    tts_model: str = "aura-asteria-en"
    tts_voice: str = "onyx"
    openai_api_key_file: str = ""
    playback_sample_rate: int = 24000

    socket_path: str = "/tmp/voice-assistant.sock"
    log_file: str = ""

    def read_secret(self, path: str) -> str:
        if not path:
            return ""
        try:
            with open(path) as f:
                return f.read().strip()
        except FileNotFoundError:
            return ""

    def deepgram_key(self) -> str:
        return self.deepgram_api_key or self.read_secret(self.deepgram_api_key_file)

    def transcription_config(self) -> TranscriptionConfig:
        return TranscriptionConfig(
            api_key=self.deepgram_key(),
            model=self.stt_model,
            language=self.stt_language,
            sample_rate=self.sample_rate,
            channels=self.channels,
            encoding=self.stt_encoding,
            punctuate=self.stt_punctuate,
            endpointing=self.stt_endpointing,
            interim_results=self.stt_interim_results,
        )
