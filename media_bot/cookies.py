import base64, binascii, logging
from pathlib import Path
from typing import List

from .config import Config

MIN_COOKIE_FILE_BYTES = 200


def write_cookies_file(b64_data: str, path: Path) -> bool:
    """فك الترميز وكتابة الكوكيز إلى ملف"""
    try:
        data = base64.b64decode(b64_data)
    except (binascii.Error, ValueError) as e:
        logging.error("YT_COOKIES_B64 is not valid base64: %s", e)
        return False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        logging.exception("Failed to write cookies file: %s", e)
        return False
    ok = path.is_file() and path.stat().st_size > MIN_COOKIE_FILE_BYTES
    logging.info("Cookies file written to %s (size=%d)", path, path.stat().st_size if ok else 0)
    return ok


def prepare_cookie_args(config: Config) -> List[str]:
    """Pick the cookie source for yt-dlp: inline base64, browser profile, then file."""
    if config.yt_cookies_b64:
        if write_cookies_file(config.yt_cookies_b64, config.yt_cookie_path):
            return ["--cookies", str(config.yt_cookie_path)]
        logging.warning("Inline cookies unusable, trying other sources.")

    if config.yt_cookies_from_browser:
        logging.info("Using cookies from browser profile %s", config.yt_cookies_from_browser)
        return ["--cookies-from-browser", config.yt_cookies_from_browser]

    if config.yt_cookie_path.is_file():
        logging.info("Using cookies file %s", config.yt_cookie_path)
        return ["--cookies", str(config.yt_cookie_path)]

    logging.warning("No cookies configured. YouTube may require login.")
    return []
