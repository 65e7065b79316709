"""Shared fixtures: a config pointing at tmp_path and a controllable clock."""

import json
from pathlib import Path
from typing import Dict, List

import pytest

from media_bot.config import load_config
from media_bot.utils import CommandResult


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRunner:
    """Stands in for run_command: replays canned results and writes output files."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.results: List[CommandResult] = []
        self.files: List[tuple] = []  # (ext, size) written per download call, in order

    def queue(self, returncode: int = 0, stdout: str = "", stderr: str = "", write: tuple = None):
        self.results.append(CommandResult(returncode, stdout, stderr))
        self.files.append(write)

    async def __call__(self, cmd: List[str]) -> CommandResult:
        self.calls.append(cmd)
        result = self.results.pop(0)
        write = self.files.pop(0)
        if write and "-o" in cmd:
            ext, size = write
            template = cmd[cmd.index("-o") + 1]
            Path(template.replace("%(ext)s", ext)).write_bytes(b"\0" * size)
        return result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def env(tmp_path) -> Dict[str, str]:
    return {
        "BOT_TOKEN": "123:ABC",
        "DOWNLOAD_DIR": str(tmp_path / "downloads"),
        "YT_DLP_PLUGIN_DIR": str(tmp_path / "plugins"),
        "YT_COOKIE_PATH": str(tmp_path / "cookies.txt"),
        "TMDB_API_KEY": "tmdb-key",
    }


@pytest.fixture
def config(tmp_path, env):
    cfg = load_config(config_file=tmp_path / "missing.json", environ=env)
    cfg.download_dir.mkdir(parents=True, exist_ok=True)
    return cfg


@pytest.fixture
def runner():
    return FakeRunner()


def metadata_json(heights=(360, 480), title="Test video", video_id="abc123", thumbnail=None) -> str:
    formats = [{"format_id": "140", "vcodec": "none", "acodec": "mp4a"}]
    formats += [{"format_id": str(h), "vcodec": "avc1", "height": h} for h in heights]
    return json.dumps({
        "id": video_id,
        "title": title,
        "duration": 125,
        "duration_string": "2:05",
        "thumbnail": thumbnail,
        "formats": formats,
    })


@pytest.fixture
def make_metadata():
    return metadata_json
