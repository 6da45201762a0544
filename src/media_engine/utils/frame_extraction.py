"""Key frame extraction from generated video clips."""

import asyncio
import base64
import io
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import httpx
from PIL import Image

from media_engine.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ExtractedFrames:
    """Frames sampled from a video clip."""

    frame_data_uris: list[str]  # base64 JPEG data URIs for vision LLMs
    frame_timestamps: list[float]  # seconds
    video_duration: float


def frame_times(duration: float, num_frames: int) -> list[float]:
    """Timestamps to sample, evenly spaced and never on the exact last frame."""
    if num_frames == 1:
        times = [duration / 2]
    elif num_frames == 2:
        times = [0.1, duration - 0.1]
    else:
        step = duration / (num_frames + 1)
        times = [step * (i + 1) for i in range(num_frames)]
    return [max(0.0, min(t, duration - 0.01)) for t in times]


def frame_to_data_uri(frame: Image.Image, max_dim: int = 1024) -> str:
    """Encode a frame as a JPEG data URI, downscaled to ``max_dim``."""
    if frame.width > max_dim or frame.height > max_dim:
        frame = frame.copy()
        frame.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    frame.convert("RGB").save(buffer, format="JPEG", quality=85)
    b64_data = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/jpeg;base64,{b64_data}"


def extract_frames_from_file(
    video_path: Path,
    num_frames: int,
) -> tuple[list[Image.Image], list[float], float]:
    """Decode frames from a local video file with MoviePy.

    Returns:
        Tuple of (frames as PIL Images, timestamps, video duration)
    """
    from moviepy import VideoFileClip

    frames: list[Image.Image] = []
    timestamps: list[float] = []

    with VideoFileClip(str(video_path)) as clip:
        duration = float(clip.duration)
        for t in frame_times(duration, num_frames):
            frames.append(Image.fromarray(clip.get_frame(t)))
            timestamps.append(t)

    return frames, timestamps, duration


class FrameExtractor:
    """Downloads a clip and samples key frames (start, middle, end by default).

    Vision chat APIs take images, not videos, so generated clips are scored
    through a handful of frames. Several frames also let the model judge
    frame-to-frame consistency.
    """

    def __init__(self, max_dim: int = 1024, download_timeout: float = 60.0) -> None:
        self.max_dim = max_dim
        self.download_timeout = download_timeout

    async def extract_frames(self, video_url: str, num_frames: int = 3) -> ExtractedFrames:
        """Sample ``num_frames`` frames from the clip at ``video_url``.

        Raises:
            ValueError: If the URL is not http(s)
            httpx.HTTPError: If the download fails
            OSError: If the clip cannot be decoded
        """
        if urlparse(video_url).scheme not in ("http", "https"):
            raise ValueError(f"frame extraction needs an http(s) URL, got {video_url[:100]}")

        logger.debug("frame_extraction_started", video_url=video_url[:100], num_frames=num_frames)

        video_path = await self._download(video_url)
        try:
            frames, timestamps, duration = await asyncio.to_thread(
                extract_frames_from_file, video_path, num_frames
            )
        finally:
            video_path.unlink(missing_ok=True)

        logger.debug(
            "frame_extraction_completed",
            frame_count=len(frames),
            video_duration=duration,
        )
        return ExtractedFrames(
            frame_data_uris=[frame_to_data_uri(f, self.max_dim) for f in frames],
            frame_timestamps=timestamps,
            video_duration=duration,
        )

    async def _download(self, video_url: str) -> Path:
        """Download a clip to a temporary file."""
        async with httpx.AsyncClient(
            timeout=self.download_timeout, follow_redirects=True
        ) as client:
            response = await client.get(video_url)
            response.raise_for_status()

        suffix = ".webm" if "webm" in response.headers.get("content-type", "") else ".mp4"
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as temp_file:
            temp_file.write(response.content)
            return Path(temp_file.name)
