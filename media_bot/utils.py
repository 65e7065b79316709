import asyncio, re, subprocess, logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

ILLEGAL_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')
URL_RE = re.compile(r"(https?://\S+)", re.IGNORECASE)


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout + stderr, for pattern matching diagnostics"""
        return f"{self.stdout}\n{self.stderr}"


async def run_command(cmd: List[str]) -> CommandResult:
    """تشغيل أوامر blocking في thread منفصل"""
    logging.info("Running command: %s", " ".join(cmd))
    loop = asyncio.get_running_loop()
    call = partial(
        subprocess.run,
        cmd,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="ignore",
    )
    proc = await loop.run_in_executor(None, call)
    result = CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")
    if result.ok:
        logging.info("Command succeeded. Output: %s", result.stdout[-800:])
    else:
        logging.warning("Command failed with code %d. Output: %s", result.returncode, result.stderr[-800:])
    return result


def is_valid_file(p: Path, min_size: int) -> bool:
    """يتأكد من صلاحية الملف"""
    try:
        return p.is_file() and p.stat().st_size > min_size
    except OSError:
        return False


def remove_file(p: Optional[Path]) -> None:
    if p is None:
        return
    try:
        if p.exists():
            p.unlink()
            logging.info("Deleted %s", p)
    except OSError as e:
        logging.warning("Could not delete %s: %s", p, e)


def sanitize_filename(name: str, max_length: int = 80, default: str = "video") -> str:
    """Strip characters that are illegal in filenames and cap the length."""
    cleaned = ILLEGAL_FILENAME_CHARS.sub("", name or "")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    cleaned = cleaned[:max_length].strip(" .")
    return cleaned or default


def truncate_utf8(text: str, max_bytes: int) -> str:
    """Cut text to at most max_bytes of UTF-8, never splitting a character."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max(max_bytes, 0)].decode("utf-8", errors="ignore")


def format_duration(seconds: Optional[float]) -> str:
    if not seconds:
        return "N/A"
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _host(url: str) -> str:
    return urlparse(url).netloc.lower().split(":")[0]


def is_youtube(url: str) -> bool:
    host = _host(url)
    return host == "youtu.be" or host == "youtube.com" or host.endswith(".youtube.com")


def is_tiktok(url: str) -> bool:
    host = _host(url)
    return host == "tiktok.com" or host.endswith(".tiktok.com")


def extract_url(text: str) -> Optional[str]:
    m = URL_RE.search(text or "")
    if not m:
        return None
    return m.group(1).rstrip(".,;:!?)]}>")
