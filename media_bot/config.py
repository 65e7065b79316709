import os, json, logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from dotenv import load_dotenv

CONFIG_FILE = Path("config.json")
DEFAULT_CONFIG: Dict[str, object] = {
    "BOT_TOKEN": "",
    "TELEGRAM_API_URL": "",                 # self-hosted Bot API server, e.g. http://localhost:8081
    "MAX_FILE_SIZE_MB": 50,                 # Telegram cloud Bot API limit
    "MIN_VALID_FILE_SIZE_BYTES": 1024,
    "DOWNLOAD_DIR": "downloads",
    "MAX_TITLE_LENGTH": 80,
    "YT_DLP_BIN": "yt-dlp",
    "YT_DLP_PLUGIN_DIR": "custom_plugins",
    "YT_DLP_JS_RUNTIME": "node",
    "YT_COOKIES_B64": "",
    "YT_COOKIES_FROM_BROWSER": "",
    "YT_COOKIE_PATH": "cookies.txt",
    "FORCE_REENCODE_TT": True,              # Re-encode TikTok to h264/aac for compatibility
    "TMDB_API_KEY": "",
    "TMDB_LANGUAGE": "en-US",
    "TMDB_REGION": "",
    "TMDB_TIMEOUT_SECONDS": 8,
    "CACHE_TTL_SECONDS": 600,
    "TIMEOUT_SECONDS": 120,                 # Telegram send timeouts
    "ALLOWED_IDS": "",
    "LOG_LEVEL": "INFO",
}


@dataclass(frozen=True)
class Config:
    bot_token: str
    telegram_api_url: str
    max_file_size_mb: int
    min_valid_file_size_bytes: int
    download_dir: Path
    max_title_length: int
    yt_dlp_bin: str
    yt_dlp_plugin_dir: Path
    yt_dlp_js_runtime: str
    yt_cookies_b64: str
    yt_cookies_from_browser: str
    yt_cookie_path: Path
    force_reencode_tt: bool
    tmdb_api_key: str
    tmdb_language: str
    tmdb_region: str
    tmdb_timeout_seconds: int
    cache_ttl_seconds: int
    timeout_seconds: int
    allowed_ids: FrozenSet[int]
    log_level: str

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


def parse_allowed_ids(s: str) -> FrozenSet[int]:
    """قراءة قائمة المستخدمين المسموح لهم"""
    if not s:
        return frozenset()
    return frozenset(int(p) for p in s.replace(",", " ").split() if p.strip().isdigit())


def load_raw_config(config_file: Path = CONFIG_FILE, environ: Optional[Dict[str, str]] = None) -> Dict[str, object]:
    """تحميل الإعدادات من config.json مع دعم الـ Env Vars"""
    config = DEFAULT_CONFIG.copy()
    if config_file.is_file():
        try:
            config.update(json.loads(config_file.read_text(encoding="utf-8")))
        except Exception:
            logging.warning("Could not read %s, using defaults.", config_file)

    env = os.environ if environ is None else environ
    for key, default in DEFAULT_CONFIG.items():
        env_val = env.get(key)
        if env_val is None:
            continue
        if isinstance(default, bool):
            config[key] = env_val.lower() in ("1", "true", "yes", "on")
        elif isinstance(default, int):
            try:
                config[key] = int(env_val)
            except ValueError:
                logging.warning("Invalid int for %s: %s", key, env_val)
        else:
            config[key] = env_val
    return config


def load_config(config_file: Path = CONFIG_FILE, environ: Optional[Dict[str, str]] = None) -> Config:
    if environ is None:
        # .env never overrides variables that are already set
        load_dotenv()
    raw = load_raw_config(config_file, environ)
    return Config(
        bot_token=str(raw["BOT_TOKEN"]).strip(),
        telegram_api_url=str(raw["TELEGRAM_API_URL"]).strip().rstrip("/"),
        max_file_size_mb=int(raw["MAX_FILE_SIZE_MB"]),
        min_valid_file_size_bytes=int(raw["MIN_VALID_FILE_SIZE_BYTES"]),
        download_dir=Path(str(raw["DOWNLOAD_DIR"])),
        max_title_length=int(raw["MAX_TITLE_LENGTH"]),
        yt_dlp_bin=str(raw["YT_DLP_BIN"]),
        yt_dlp_plugin_dir=Path(str(raw["YT_DLP_PLUGIN_DIR"])),
        yt_dlp_js_runtime=str(raw["YT_DLP_JS_RUNTIME"]),
        yt_cookies_b64=str(raw["YT_COOKIES_B64"]).strip(),
        yt_cookies_from_browser=str(raw["YT_COOKIES_FROM_BROWSER"]).strip(),
        yt_cookie_path=Path(str(raw["YT_COOKIE_PATH"])),
        force_reencode_tt=bool(raw["FORCE_REENCODE_TT"]),
        tmdb_api_key=str(raw["TMDB_API_KEY"]).strip(),
        tmdb_language=str(raw["TMDB_LANGUAGE"]),
        tmdb_region=str(raw["TMDB_REGION"]),
        tmdb_timeout_seconds=int(raw["TMDB_TIMEOUT_SECONDS"]),
        cache_ttl_seconds=int(raw["CACHE_TTL_SECONDS"]),
        timeout_seconds=int(raw["TIMEOUT_SECONDS"]),
        allowed_ids=parse_allowed_ids(str(raw["ALLOWED_IDS"])),
        log_level=str(raw["LOG_LEVEL"]).upper(),
    )
