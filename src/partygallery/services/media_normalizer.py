"""Media normalization for the upload pipeline.

Before upload every item gets its intrinsic dimensions probed and its bytes
shrunk: images are recompressed with Pillow, standalone videos re-encoded with
ffmpeg. All of it is best effort. A failed probe yields no dimensions and a
failed compression yields the original bytes, so normalization never fails an
upload.
"""

import io
import json
import os
import re
import shutil
import subprocess  # nosec B404
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from PIL import Image, ImageOps

from ..logging_config import get_logger, log_degraded, log_performance
from ..models.media import Dimensions, LivePhotoPair, SelectedFile, UploadItem

try:
    from pillow_heif import register_heif_opener  # type: ignore[import-untyped]

    register_heif_opener()
    HEIF_AVAILABLE = True
except ImportError:
    HEIF_AVAILABLE = False

logger = get_logger(__name__)

ProgressCallback = Callable[[float], None]

_OUT_TIME_PATTERN = re.compile(r"out_time_(?:us|ms)=(\d+)")


def _ignore_progress(_: float) -> None:
    pass


@dataclass(frozen=True)
class NormalizedItem:
    """An upload item after normalization, ready for transfer."""

    primary: SelectedFile
    companion: SelectedFile | None
    dimensions: Dimensions | None


class MediaNormalizer:
    """Probes and compresses media ahead of upload."""

    # JPEG qualities tried in order until the output fits the byte target
    QUALITY_STEPS = (85, 75, 65, 55, 45)

    def __init__(self) -> None:
        self.IMAGE_MAX_BYTES = int(os.getenv("IMAGE_MAX_BYTES", 1024 * 1024))
        self.IMAGE_MAX_EDGE = int(os.getenv("IMAGE_MAX_EDGE", 1920))
        self.VIDEO_MAX_HEIGHT = int(os.getenv("VIDEO_MAX_HEIGHT", 720))
        self.VIDEO_CRF = int(os.getenv("VIDEO_CRF", 28))
        self.VIDEO_PRESET = os.getenv("VIDEO_PRESET", "faster")

        if not HEIF_AVAILABLE:
            logger.warning("heif_support_unavailable", message="Install pillow-heif for HEIC support")

    # Dimensions

    def probe_dimensions(self, file: SelectedFile) -> Dimensions | None:
        """
        Read the natural width and height of an image or video.

        Returns:
            Dimensions | None: None when the file cannot be decoded
        """
        try:
            if file.is_image:
                return self._probe_image_dimensions(file.data)
            if file.is_video:
                return self._probe_video_dimensions(file)
        except Exception as e:
            log_degraded("decode_warning", operation="probe_dimensions", filename=file.name, error=str(e))
            return None

        return None

    def _probe_image_dimensions(self, data: bytes) -> Dimensions:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            # Orientations 5-8 are rotated by 90 degrees
            if image.getexif().get(0x0112, 1) in (5, 6, 7, 8):
                width, height = height, width
            return Dimensions(width=width, height=height)

    def _probe_video_dimensions(self, file: SelectedFile) -> Dimensions | None:
        if not _ffprobe_available():
            log_degraded("decode_warning", operation="probe_video", filename=file.name, reason="ffprobe_missing")
            return None

        with tempfile.TemporaryDirectory(prefix="partygallery_probe_") as tmpdir:
            path = Path(tmpdir) / f"input{Path(file.name).suffix or '.mp4'}"
            path.write_bytes(file.data)
            probe = _probe_media(path)

        if not probe:
            log_degraded("decode_warning", operation="probe_video", filename=file.name, reason="probe_failed")
            return None

        stream = next((s for s in probe.get("streams", []) if s.get("width") and s.get("height")), None)
        if stream is None:
            return None

        width, height = int(stream["width"]), int(stream["height"])
        if abs(_stream_rotation(stream)) in (90, 270):
            width, height = height, width
        return Dimensions(width=width, height=height)

    # Images

    def compress_image(self, file: SelectedFile, on_progress: ProgressCallback | None = None) -> SelectedFile:
        """
        Recompress an image to roughly ``IMAGE_MAX_BYTES`` as JPEG.

        The longest edge is capped at ``IMAGE_MAX_EDGE`` and EXIF orientation
        is applied to the pixels, so the image looks the same everywhere.
        Returns the original file untouched if it already fits, or if
        anything goes wrong.
        """
        report = on_progress or _ignore_progress
        start_time = datetime.now()

        try:
            result = self._compress_image(file, report)
        except Exception as e:
            log_degraded("decode_warning", operation="compress_image", filename=file.name, error=str(e))
            result = file

        report(1.0)
        log_performance(
            "compress_image",
            (datetime.now() - start_time).total_seconds(),
            filename=file.name,
            original_size=file.size,
            compressed_size=result.size,
        )
        return result

    def _compress_image(self, file: SelectedFile, report: ProgressCallback) -> SelectedFile:
        with Image.open(io.BytesIO(file.data)) as source:
            image = ImageOps.exif_transpose(source)

        if file.size <= self.IMAGE_MAX_BYTES and max(image.size) <= self.IMAGE_MAX_EDGE:
            logger.debug("image_within_limits", filename=file.name, size=file.size, dimensions=image.size)
            return file

        exif = image.getexif()
        if max(image.size) > self.IMAGE_MAX_EDGE:
            image.thumbnail((self.IMAGE_MAX_EDGE, self.IMAGE_MAX_EDGE), Image.Resampling.LANCZOS)
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        best: bytes | None = None
        for step, quality in enumerate(self.QUALITY_STEPS, start=1):
            buffer = io.BytesIO()
            save_kwargs: dict = {"format": "JPEG", "quality": quality, "optimize": True}
            if len(exif):
                save_kwargs["exif"] = exif.tobytes()
            image.save(buffer, **save_kwargs)
            candidate = buffer.getvalue()
            report(step / len(self.QUALITY_STEPS))

            if best is None or len(candidate) < len(best):
                best = candidate
            if len(candidate) <= self.IMAGE_MAX_BYTES:
                break

        if best is None or len(best) >= file.size:
            return file

        logger.debug(
            "image_compressed",
            filename=file.name,
            original_size=file.size,
            compressed_size=len(best),
            dimensions=image.size,
        )
        return file.with_data(best, mime_type="image/jpeg", name=f"{Path(file.name).stem}.jpg")

    # Videos

    def compress_video(self, file: SelectedFile, on_progress: ProgressCallback | None = None) -> SelectedFile:
        """
        Re-encode a video to H.264 at a fixed CRF, at most ``VIDEO_MAX_HEIGHT`` tall.

        Returns the original file if ffmpeg is missing, the encode fails, or
        the result is not smaller.
        """
        report = on_progress or _ignore_progress
        start_time = datetime.now()

        if not _ffmpeg_available():
            log_degraded("decode_warning", operation="compress_video", filename=file.name, reason="ffmpeg_missing")
            report(1.0)
            return file

        try:
            result = self._compress_video(file, report)
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            log_degraded("decode_warning", operation="compress_video", filename=file.name, error=str(e))
            result = file

        report(1.0)
        log_performance(
            "compress_video",
            (datetime.now() - start_time).total_seconds(),
            filename=file.name,
            original_size=file.size,
            compressed_size=result.size,
        )
        return result

    def build_ffmpeg_command(self, in_path: Path, out_path: Path) -> list[str]:
        """The ffmpeg invocation used for standalone videos."""
        max_height = self.VIDEO_MAX_HEIGHT
        return [
            "ffmpeg",
            "-y",
            "-loglevel",
            "error",
            "-i",
            str(in_path),
            "-vcodec",
            "libx264",
            "-crf",
            str(self.VIDEO_CRF),
            "-preset",
            self.VIDEO_PRESET,
            "-vf",
            f"scale=-2:'min({max_height},trunc(ih/2)*2)'",
            "-c:a",
            "aac",
            "-movflags",
            "+faststart",
            "-progress",
            "pipe:1",
            "-nostats",
            str(out_path),
        ]

    def _compress_video(self, file: SelectedFile, report: ProgressCallback) -> SelectedFile:
        with tempfile.TemporaryDirectory(prefix="partygallery_video_") as tmpdir:
            in_path = Path(tmpdir) / f"input{Path(file.name).suffix or '.mp4'}"
            out_path = Path(tmpdir) / "output.mp4"
            in_path.write_bytes(file.data)

            probe = _probe_media(in_path) or {}
            try:
                duration_us = float(probe.get("format", {}).get("duration", 0)) * 1_000_000
            except (TypeError, ValueError):
                duration_us = 0.0

            proc = subprocess.Popen(  # nosec B603
                self.build_ffmpeg_command(in_path, out_path),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
            assert proc.stdout is not None  # nosec B101
            for line in proc.stdout:
                match = _OUT_TIME_PATTERN.search(line)
                if match and duration_us > 0:
                    report(min(int(match.group(1)) / duration_us, 0.99))
            _, stderr = proc.communicate()

            if proc.returncode != 0 or not out_path.exists():
                log_degraded(
                    "decode_warning",
                    operation="compress_video",
                    filename=file.name,
                    returncode=proc.returncode,
                    stderr=(stderr or "")[:300],
                )
                return file

            encoded = out_path.read_bytes()

        if len(encoded) >= file.size:
            logger.info("video_reencode_not_smaller", filename=file.name, original_size=file.size, encoded=len(encoded))
            return file

        return file.with_data(encoded, mime_type="video/mp4", name=f"{Path(file.name).stem}.mp4")

    # Items

    def normalize(self, item: UploadItem, on_progress: ProgressCallback | None = None) -> NormalizedItem:
        """
        Probe and compress one upload item.

        Live Photo companion clips are passed through unmodified.
        """
        report = on_progress or _ignore_progress
        primary = item.primary
        dimensions = self.probe_dimensions(primary)

        if primary.is_image:
            processed = self.compress_image(primary, report)
        else:
            processed = self.compress_video(primary, report)

        companion = item.video if isinstance(item, LivePhotoPair) else None
        return NormalizedItem(primary=processed, companion=companion, dimensions=dimensions)


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None


def _ffprobe_available() -> bool:
    return shutil.which("ffprobe") is not None


def _probe_media(path: Path) -> dict | None:
    """Run ffprobe and return its JSON report, or None on failure."""
    if not _ffprobe_available():
        return None
    try:
        proc = subprocess.run(  # nosec B603 B607
            [
                "ffprobe",
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-show_entries",
                "stream=codec_type,width,height:stream_tags=rotate:stream_side_data=rotation",
                "-of",
                "json",
                str(path),
            ],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("ffprobe_failed", path=str(path), error=str(e))
        return None

    if proc.returncode != 0:
        return None
    try:
        return json.loads(proc.stdout)
    except json.JSONDecodeError:
        return None


def _stream_rotation(stream: dict) -> int:
    """Rotation in degrees from either the legacy tag or the display matrix."""
    try:
        rotate = stream.get("tags", {}).get("rotate")
        if rotate is not None:
            return int(rotate)
        for side_data in stream.get("side_data_list", []):
            if "rotation" in side_data:
                return int(side_data["rotation"])
    except (TypeError, ValueError):
        pass
    return 0


_normalizer: MediaNormalizer | None = None


def get_media_normalizer() -> MediaNormalizer:
    """Get the global normalizer instance."""
    global _normalizer
    if _normalizer is None:
        _normalizer = MediaNormalizer()
    return _normalizer
