import numpy as np

PCM16_SCALE = 32767


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Convert float samples in [-1.0, 1.0] to little-endian int16 PCM bytes.

    Out-of-range values are clamped to the rails, NaN becomes silence and
    rounding is half-to-even, so the result matches
    ``round(clamp(x, -1, 1) * 32767)`` sample for sample.
    """
    values = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0, posinf=1.0, neginf=-1.0)
    scaled = np.rint(np.clip(values, -1.0, 1.0) * PCM16_SCALE)
    return scaled.astype("<i2").tobytes()


def pcm16_to_float(pcm: bytes) -> np.ndarray:
    return np.frombuffer(pcm, dtype="<i2").astype(np.float32) / PCM16_SCALE
