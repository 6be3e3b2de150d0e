"""Video access through ffmpeg/ffprobe subprocesses."""

from __future__ import annotations

import asyncio
import json
import logging
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import requests

from cliphunt.base.clip import Clip
from cliphunt.base.exceptions import ExportFailure, VideoMetadataError, VideoSourceError
from cliphunt.base.utils import generate_random_name, slugify

__all__ = ["VideoFrame", "VideoSource", "FFmpegVideoSource", "download_video", "export_clip"]

logger = logging.getLogger(__name__)

DEFAULT_FRAME_WIDTH = 480
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class VideoFrame:
    """A single sampled frame, JPEG encoded."""

    timestamp: float
    data: bytes

    @property
    def mime_type(self) -> str:
        return "image/jpeg"


class VideoSource(ABC):
    """Media capabilities the analysis pipeline needs from a video."""

    @abstractmethod
    async def probe_duration(self) -> float:
        """Duration of the video in seconds."""

    @abstractmethod
    async def capture_frame(self, timestamp: float) -> bytes:
        """JPEG bytes of the frame shown at `timestamp`."""

    @abstractmethod
    async def extract_audio(self) -> bytes:
        """The audio track encoded as MP3."""

    @abstractmethod
    async def trim(self, start_time: float, end_time: float) -> bytes:
        """An MP4 containing only `[start_time, end_time)` of the video."""

    @property
    def name(self) -> str:
        return type(self).__name__


async def _run_command(cmd: list[str], *, error_cls: type[VideoSourceError] = VideoSourceError) -> bytes:
    """Run a command without blocking the event loop and return its stdout."""
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise error_cls(f"Executable not found: {cmd[0]}") from e

    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        message = stderr.decode(errors="replace").strip()
        raise error_cls(f"{cmd[0]} exited with code {process.returncode}: {message}")
    return stdout


class FFmpegVideoSource(VideoSource):
    """Video file read with the `ffmpeg` and `ffprobe` executables."""

    def __init__(self, path: str | Path, frame_width: int = DEFAULT_FRAME_WIDTH):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Video file not found: {self.path}")
        self.frame_width = frame_width
        self._duration: float | None = None

    def __repr__(self) -> str:
        return f"FFmpegVideoSource({str(self.path)!r})"

    @property
    def name(self) -> str:
        return self.path.name

    async def probe_duration(self) -> float:
        if self._duration is not None:
            return self._duration

        cmd = [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-print_format",
            "json",
            str(self.path),
        ]
        output = await _run_command(cmd, error_cls=VideoMetadataError)
        try:
            duration = float(json.loads(output)["format"]["duration"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise VideoMetadataError(f"Error parsing FFprobe output: {e}")

        self._duration = duration
        return duration

    async def capture_frame(self, timestamp: float) -> bytes:
        cmd = [
            "ffmpeg",
            "-v",
            "error",
            "-ss",
            f"{timestamp:.3f}",
            "-i",
            str(self.path),
            "-frames:v",
            "1",
            "-vf",
            f"scale={self.frame_width}:-2",
            "-q:v",
            "5",
            "-f",
            "image2pipe",
            "-vcodec",
            "mjpeg",
            "pipe:1",
        ]
        data = await _run_command(cmd)
        if not data:
            raise VideoSourceError(f"No frame decoded at {timestamp:.2f}s from {self.path}")
        return data

    async def extract_audio(self) -> bytes:
        # Low bitrate keeps the upload to the transcription backend small.
        cmd = [
            "ffmpeg",
            "-v",
            "error",
            "-i",
            str(self.path),
            "-vn",
            "-acodec",
            "libmp3lame",
            "-q:a",
            "5",
            "-f",
            "mp3",
            "pipe:1",
        ]
        data = await _run_command(cmd)
        if not data:
            raise VideoSourceError(f"No audio track in {self.path}")
        return data

    async def trim(self, start_time: float, end_time: float) -> bytes:
        if end_time <= start_time:
            raise ValueError(f"end_time ({end_time}) must be greater than start_time ({start_time})")

        with tempfile.TemporaryDirectory() as tmp_dir:
            output_path = Path(tmp_dir) / generate_random_name(suffix=".mp4")
            cmd = [
                "ffmpeg",
                "-v",
                "error",
                "-y",
                "-ss",
                f"{start_time:.3f}",
                "-i",
                str(self.path),
                "-t",
                f"{end_time - start_time:.3f}",
                "-c",
                "copy",
                str(output_path),
            ]
            await _run_command(cmd)
            return output_path.read_bytes()


async def export_clip(source: VideoSource, clip: Clip, output_dir: str | Path) -> Path:
    """Trim `clip` out of `source` and write it as `<title>_clip.mp4` in `output_dir`.

    Raises:
        ExportFailure: If trimming or writing fails. Session state is never touched.
    """
    output_path = Path(output_dir) / f"{slugify(clip.title)}_clip.mp4"
    try:
        data = await source.trim(clip.start_time, clip.end_time)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
    except (VideoSourceError, ValueError, OSError) as e:
        logger.error("Export of %s failed: %s", clip.id, e)
        raise ExportFailure(f"Could not export clip '{clip.title}': {e}") from e

    logger.info("Exported %s to %s", clip.id, output_path)
    return output_path


def download_video(url: str, output_dir: str | Path, timeout: float = 60.0) -> Path:
    """Download a remote video file over HTTP.

    Args:
        url: Direct link to the video file.
        output_dir: Directory to save the download into.
        timeout: Connect/read timeout in seconds.

    Returns:
        Path of the downloaded file.

    Raises:
        VideoSourceError: If the request fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    suffix = Path(url.split("?", 1)[0]).suffix or ".mp4"
    output_path = output_dir / generate_random_name(suffix=suffix)

    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(output_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
    except requests.RequestException as e:
        output_path.unlink(missing_ok=True)
        raise VideoSourceError(f"Could not download video from {url}: {e}") from e

    logger.info("Downloaded %s to %s", url, output_path)
    return output_path
