class VoiceAssistantError(Exception):
    pass


class ConfigError(VoiceAssistantError):
    pass


class StreamConnectionError(VoiceAssistantError, ConnectionError):
    pass


class TransportError(VoiceAssistantError):
    pass


class DownstreamError(VoiceAssistantError):
    pass


class DeviceError(VoiceAssistantError):
    pass
