import pytest

from meteor_rx.base.capture import StagingKind
from meteor_rx.operators.receiver.staging import MemoryStagingPolicy, read_available_memory_mb

from conftest import make_config


@pytest.mark.parametrize(
    "free_mb, expected",
    [
        (0, StagingKind.DISK),
        (1199, StagingKind.DISK),
        (1200, StagingKind.RAM),
        (8000, StagingKind.RAM),
    ],
)
def test_staging_threshold(tmp_path, free_mb, expected):
    config = make_config(tmp_path, receiver={"memory_threshold_mb": 1200})
    staging = MemoryStagingPolicy(config, memory_reader=lambda: free_mb).choose()
    assert staging.kind is expected
    if expected is StagingKind.RAM:
        assert staging.in_memory
        assert staging.base_path == config.paths.ramfs_audio
    else:
        assert not staging.in_memory
        assert staging.base_path == config.paths.audio_output


def test_audio_file_location(config):
    staging = MemoryStagingPolicy(config, memory_reader=lambda: 4096).choose()
    assert staging.audio_file("pass") == config.paths.ramfs_audio / "pass.wav"


def test_read_available_memory(tmp_path):
    meminfo = tmp_path / "meminfo"
    meminfo.write_text("MemTotal:        3884328 kB\nMemFree:          180244 kB\nMemAvailable:    2097152 kB\n")
    assert read_available_memory_mb(meminfo) == 2048


def test_read_available_memory_missing_field(tmp_path):
    meminfo = tmp_path / "meminfo"
    meminfo.write_text("MemTotal:        3884328 kB\n")
    with pytest.raises(RuntimeError):
        read_available_memory_mb(meminfo)
