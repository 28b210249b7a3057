"""Frame loudness measurement."""

import numpy as np

from ..models.audio import LoudnessSample

FULL_SCALE = 32768.0  # int16 full-scale amplitude

METRICS = ("rms", "peak")


class AmplitudeSampler:
    """Turns raw 16-bit PCM frames into normalized loudness samples.

    Stateless; one instance can be shared by any number of recordings.
    """

    def __init__(self, metric: str = "rms"):
        """Initialize sampler.

        Args:
            metric: "rms" (root mean square over the frame) or "peak"
                (largest absolute sample)
        """
        if metric not in METRICS:
            raise ValueError(f"Unknown loudness metric: {metric}")
        self.metric = metric

    def sample(self, data: bytes, timestamp: float = 0.0) -> LoudnessSample:
        """Compute loudness of one frame, scaled to [0.0, 1.0]."""
        samples = np.frombuffer(data, dtype=np.int16)
        if samples.size == 0:
            return LoudnessSample(loudness=0.0, timestamp=timestamp)

        if self.metric == "peak":
            level = float(np.max(np.abs(samples.astype(np.int32))))
        else:
            level = float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))

        return LoudnessSample(loudness=min(level / FULL_SCALE, 1.0), timestamp=timestamp)
