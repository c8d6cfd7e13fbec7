from pathlib import Path

import pytest

from meteor_rx.base.capture import PassCapture, PassDirection, PassSide
from meteor_rx.base.config import PipelineConfig
from meteor_rx.common.tools import ToolResult

TOOL_NAMES = (
    "record_rtl_fm",
    "record_gnuradio",
    "meteordemod",
    "satdump",
    "convert",
    "annotate",
    "thumbnail",
    "spectrogram",
)


def _touch(path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xff\xd8fake")


class FakeRunner:
    """Stands in for ToolRunner. Records every command and fakes the files each tool would write."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self.cwds: list = []
        self.hooks = {}
        self.returncodes = {}

    def on(self, tool: str, hook) -> None:
        """Run `hook(cmd, cwd)` whenever `tool` is invoked."""
        self.hooks[tool] = hook

    def tools_called(self) -> list[str]:
        return [cmd[0] for cmd in self.calls]

    def calls_to(self, tool: str) -> list[list[str]]:
        return [cmd for cmd in self.calls if cmd[0] == tool]

    async def run(self, cmd, cwd=None, check=None) -> ToolResult:
        cmd = [str(c) for c in cmd]
        self.calls.append(cmd)
        self.cwds.append(cwd)
        tool = cmd[0]
        if tool in self.hooks:
            self.hooks[tool](cmd, cwd)
        elif tool in ("annotate", "spectrogram"):
            _touch(cmd[2])
        elif tool == "thumbnail":
            _touch(cmd[3])
        elif tool in ("record_rtl_fm", "record_gnuradio"):
            _touch(cmd[2])
        elif tool == "convert" and not Path(cmd[-1]).exists():
            _touch(cmd[-1])
        return ToolResult(self.returncodes.get(tool, 0), "")


class FakeProcessTable:
    def __init__(self, running=None):
        self.running = running or {}
        self.terminated = []

    def find(self, pattern: str) -> list[int]:
        return list(self.running.get(pattern, []))

    def terminate(self, pid: int, sig: int) -> None:
        self.terminated.append((pid, sig))


class FakeEphemeris:
    def __init__(self, elevation: float = 12):
        self.elevation = elevation
        self.requested = []

    def __call__(self, timestamp: int) -> float:
        self.requested.append(timestamp)
        return self.elevation


def make_config(tmp_path: Path, **sections) -> PipelineConfig:
    data = {
        "paths": {
            "image_output": str(tmp_path / "images"),
            "audio_output": str(tmp_path / "audio"),
            "ramfs_audio": str(tmp_path / "ramfs"),
            "work_dir": str(tmp_path / "work"),
            "db_file": str(tmp_path / "db" / "panel.db"),
            "lease_file": str(tmp_path / "meteor-rx.lease"),
            "ephemeris_dir": str(tmp_path / "ephemeris"),
        },
        "tools": {name: name for name in TOOL_NAMES},
        "push": {"scripts_dir": str(tmp_path / "push"), "delay": 0},
    }
    for name, values in sections.items():
        data.setdefault(name, {}).update(values)
    return PipelineConfig.from_dict(data)


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path)


@pytest.fixture
def capture(tmp_path):
    return PassCapture(
        sat_name="METEOR-M2 3",
        filename_base="METEOR-M2-3-20240315-101500",
        tle_file=tmp_path / "weather.tle",
        epoch_start=1710497700,
        capture_time=900,
        max_elevation=54,
        direction=PassDirection.NORTHBOUND,
        side=PassSide.EAST,
    )


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def process_table():
    return FakeProcessTable()


@pytest.fixture
def ephemeris():
    return FakeEphemeris()
