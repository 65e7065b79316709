import asyncio, glob, hashlib, json, logging, time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import ffmpeg  # ffmpeg-python

from .config import Config
from .errors import ErrorKind, ExtractionError, classify_diagnostic
from .utils import (
    CommandResult, format_duration, is_tiktok, is_valid_file, is_youtube,
    remove_file, run_command, sanitize_filename, truncate_utf8,
)

QUALITY_CHOICES = ("720", "480", "360", "best", "mp3")
MAX_TIER_HEIGHT = 1080
PRIMARY_CLIENT = "web"
FALLBACK_CLIENT = "android"
PARTIAL_SUFFIXES = {".part", ".ytdl", ".temp", ".tmp"}
TIKTOK_REFERER = "Referer:https://www.tiktok.com/"
NAME_MAX_BYTES = 255
# room for ".f137.mp4.part" style suffixes yt-dlp appends while downloading
EXT_RESERVE_BYTES = 32

Runner = Callable[[List[str]], Awaitable[CommandResult]]


@dataclass
class VideoInfo:
    url: str
    title: str
    duration_label: str
    thumbnail_url: Optional[str]
    available_heights: List[int] = field(default_factory=list)
    content_id: str = ""


@dataclass
class ResolvedQuality:
    requested: Optional[int]
    height: Optional[int]

    @property
    def substituted(self) -> bool:
        return self.requested is not None and self.height != self.requested

    @property
    def label(self) -> str:
        return f"{self.height}p" if self.height else "best"


@dataclass
class DownloadedFile:
    path: Path
    audio: bool
    quality: Optional[ResolvedQuality] = None


def resolve_height(requested: Optional[int], available: List[int]) -> ResolvedQuality:
    """Pick the height to download for a requested tier.

    Exact match wins, otherwise the closest available height below the
    request. When nothing fits, or the request is above the highest tier
    the bot knows, height is None meaning "best available".
    """
    if requested is None:
        return ResolvedQuality(None, None)
    if requested > MAX_TIER_HEIGHT:
        return ResolvedQuality(requested, None)
    # no advertised heights: let the selector cap it
    if not available or requested in available:
        return ResolvedQuality(requested, requested)
    lower = [h for h in available if h <= requested]
    if lower:
        return ResolvedQuality(requested, max(lower))
    return ResolvedQuality(requested, None)


def build_format(height: Optional[int], audio: bool = False, broad: bool = False) -> str:
    if audio:
        return "ba/b" if broad else "ba[ext=m4a]/ba"
    if height is None:
        return "bv*+ba/b" if broad else "bv*[ext=mp4]+ba[ext=m4a]/b[ext=mp4]"
    if broad:
        return f"bv*[height<={height}]+ba/b[height<={height}]/bv*+ba/b"
    return f"bv*[height<={height}][ext=mp4]+ba[ext=m4a]/b[height<={height}][ext=mp4]"


def url_digest(url: str) -> str:
    return hashlib.md5(url.encode()).hexdigest()[:10]


def parse_heights(formats: List[Dict]) -> List[int]:
    heights = set()
    for f in formats or []:
        if f.get("vcodec") == "none":
            continue
        h = f.get("height")
        if isinstance(h, int) and h > 0:
            heights.add(h)
    return sorted(heights)


class Downloader:
    """Thin adapter around the yt-dlp command line."""

    def __init__(self, config: Config, cookie_args: Optional[List[str]] = None, runner: Runner = run_command):
        self.config = config
        self.cookie_args = list(cookie_args or [])
        self.runner = runner

    def base_args(self, url: str, player_client: str = PRIMARY_CLIENT) -> List[str]:
        cmd = [
            self.config.yt_dlp_bin,
            "--no-check-certificates",
            "--no-warnings",
            "--no-playlist",
            "--js-runtimes", self.config.yt_dlp_js_runtime,
        ]
        if self.config.yt_dlp_plugin_dir.is_dir():
            cmd += ["--plugin-dirs", str(self.config.yt_dlp_plugin_dir)]
        if is_youtube(url):
            cmd += ["--extractor-args", f"youtube:player_client={player_client}"]
        elif is_tiktok(url):
            cmd += ["--extractor-args", "tiktok:hd=1", "--add-header", TIKTOK_REFERER]
        cmd += self.cookie_args
        return cmd

    async def fetch_metadata(self, url: str) -> VideoInfo:
        result = await self.runner(self.base_args(url) + ["-J", url])
        if not result.ok:
            raise ExtractionError(classify_diagnostic(result.output), result.stderr.strip()[-500:])
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ExtractionError(ErrorKind.UNKNOWN, f"bad metadata json: {e}") from e
        if data.get("_type") == "playlist" and data.get("entries"):
            data = data["entries"][0]

        duration_label = data.get("duration_string") or format_duration(data.get("duration"))
        return VideoInfo(
            url=url,
            title=data.get("title") or "video",
            duration_label=str(duration_label),
            thumbnail_url=data.get("thumbnail"),
            available_heights=parse_heights(data.get("formats") or []),
            content_id=str(data.get("id") or ""),
        )

    @staticmethod
    def resolve_quality(quality: str, available_heights: List[int]) -> ResolvedQuality:
        requested = int(quality) if quality.isdigit() else None
        return resolve_height(requested, available_heights)

    def build_base_name(self, title: str, content_id: str) -> str:
        safe_title = sanitize_filename(title, self.config.max_title_length)
        safe_id = sanitize_filename(content_id, 20, default="media").replace(" ", "_")
        tail = f"_{safe_id}_{int(time.time())}"
        # filesystems cap names in bytes, not characters
        budget = NAME_MAX_BYTES - EXT_RESERVE_BYTES - len(tail.encode("utf-8"))
        safe_title = truncate_utf8(safe_title, budget).strip(" .") or "video"
        return safe_title + tail

    def download_args(self, url: str, out_template: Path, fmt: str, audio: bool, player_client: str) -> List[str]:
        cmd = self.base_args(url, player_client) + [
            "-f", fmt,
            "--max-filesize", f"{self.config.max_file_size_mb}M",
            "-o", str(out_template),
        ]
        if audio:
            cmd += ["-x", "--audio-format", "mp3"]
        else:
            cmd += ["--merge-output-format", "mp4"]
        return cmd + [url]

    def _outputs(self, base_name: str) -> List[Path]:
        pattern = glob.escape(base_name) + "*"
        return sorted(self.config.download_dir.glob(pattern), key=lambda p: p.stat().st_mtime, reverse=True)

    def _find_output(self, base_name: str, audio: bool) -> Optional[Path]:
        files = [p for p in self._outputs(base_name) if p.suffix.lower() not in PARTIAL_SUFFIXES]
        if audio:
            files.sort(key=lambda p: p.suffix.lower() != ".mp3")
        return next((p for p in files if is_valid_file(p, self.config.min_valid_file_size_bytes)), None)

    def _discard(self, base_name: str, keep: Optional[Path] = None) -> None:
        for p in self._outputs(base_name):
            if p != keep:
                remove_file(p)

    async def download(
        self,
        url: str,
        quality: str,
        title: str,
        available_heights: List[int],
        content_id: Optional[str] = None,
    ) -> DownloadedFile:
        audio = quality == "mp3"
        resolved = None if audio else self.resolve_quality(quality, available_heights)
        height = resolved.height if resolved else None

        self.config.download_dir.mkdir(parents=True, exist_ok=True)
        base_name = self.build_base_name(title, content_id or url_digest(url))
        out_template = self.config.download_dir / f"{base_name}.%(ext)s"

        cmd = self.download_args(url, out_template, build_format(height, audio), audio, PRIMARY_CLIENT)
        result = await self.runner(cmd)
        if not result.ok and classify_diagnostic(result.output) is ErrorKind.FORMAT_UNAVAILABLE:
            logging.warning("Requested format unavailable for %s, retrying with broader selector", url)
            self._discard(base_name)
            cmd = self.download_args(url, out_template, build_format(height, audio, broad=True), audio, FALLBACK_CLIENT)
            result = await self.runner(cmd)

        if not result.ok:
            self._discard(base_name)
            raise ExtractionError(classify_diagnostic(result.output), result.stderr.strip()[-500:])

        path = self._find_output(base_name, audio)
        if path is None:
            kind = classify_diagnostic(result.output)
            self._discard(base_name)
            raise ExtractionError(kind if kind is ErrorKind.MAX_FILESIZE else ErrorKind.UNKNOWN, "no output file")
        self._discard(base_name, keep=path)

        if not audio and is_tiktok(url) and self.config.force_reencode_tt:
            path = await self.ensure_h264(path)

        # yt-dlp does not enforce --max-filesize for every format (merged or size-less streams)
        size = path.stat().st_size
        if size > self.config.max_file_size_bytes:
            logging.warning("Output %s is %d bytes, over the %d MB limit", path, size, self.config.max_file_size_mb)
            remove_file(path)
            raise ExtractionError(ErrorKind.MAX_FILESIZE, f"{size} bytes")

        return DownloadedFile(path=path, audio=audio, quality=resolved)

    async def ensure_h264(self, path: Path) -> Path:
        """Re-encode to h264/aac mp4 when the video codec is something else."""
        info = await probe_video(path)
        if info.get("codec") in (None, "h264"):
            return path
        out_path = path.with_name(f"{path.stem}_h264.mp4")
        if await reencode_to_mp4(path, out_path, self.config.min_valid_file_size_bytes):
            remove_file(path)
            return out_path
        remove_file(out_path)
        return path


async def probe_video(path: Path) -> Dict:
    """width / height / duration / codec of the first video stream, best-effort"""
    try:
        data = await asyncio.to_thread(ffmpeg.probe, str(path))
    except ffmpeg.Error as e:
        logging.warning("ffprobe failed for %s: %s", path, (e.stderr or b"").decode("utf-8", errors="ignore")[-300:])
        return {}
    except (OSError, ValueError) as e:
        logging.warning("ffprobe unavailable for %s: %s", path, e)
        return {}

    stream = next((s for s in data.get("streams", []) if s.get("codec_type") == "video"), None)
    if stream is None:
        return {}
    duration = stream.get("duration") or data.get("format", {}).get("duration")
    return {
        "width": int(stream.get("width") or 0) or None,
        "height": int(stream.get("height") or 0) or None,
        "duration": int(float(duration)) if duration else None,
        "codec": stream.get("codec_name"),
    }


async def reencode_to_mp4(in_path: Path, out_path: Path, min_size: int) -> bool:
    try:
        await asyncio.to_thread(
            lambda: ffmpeg
            .input(str(in_path))
            .output(str(out_path),
                    vcodec="libx264",
                    pix_fmt="yuv420p",
                    preset="veryfast",
                    movflags="+faststart",
                    acodec="aac")
            .run(overwrite_output=True, quiet=True)
        )
        return is_valid_file(out_path, min_size)
    except ffmpeg.Error as e:
        err = (e.stderr or b"").decode("utf-8", errors="ignore")
        logging.error("ffmpeg re-encode failed: %s", err[-800:])
        return False
    except OSError as e:
        logging.exception("ffmpeg error: %s", e)
        return False
