import logging
from pathlib import Path
from typing import Callable, Optional

from meteor_rx.base.capture import StagingKind, StagingLocation
from meteor_rx.base.config import PipelineConfig

logger = logging.getLogger(__name__)

MEMINFO_PATH = Path("/proc/meminfo")


def read_available_memory_mb(meminfo_path: Path = MEMINFO_PATH) -> int:
    """Available memory in MB, the same figure `free -m` reports in its `available` column."""
    with open(meminfo_path, "rt") as f:
        for line in f:
            if line.startswith("MemAvailable:"):
                return int(line.split()[1]) // 1024
    raise RuntimeError(f"MemAvailable not found in {meminfo_path}")


class MemoryStagingPolicy:
    """Decide once per run whether intermediate audio lives on the RAM disk or on persistent storage."""

    def __init__(self, config: PipelineConfig, memory_reader: Optional[Callable[[], int]] = None):
        self.threshold_mb: int = config.receiver.memory_threshold_mb
        self.ram_path: Path = config.paths.ramfs_audio
        self.disk_path: Path = config.paths.audio_output
        self.memory_reader = memory_reader or read_available_memory_mb

    def choose(self) -> StagingLocation:
        free_mb = self.memory_reader()
        if free_mb < self.threshold_mb:
            logger.info("The system doesn't have enough space to store a Meteor pass on RAM")
            logger.info(f"Free : {free_mb} ; Required : {self.threshold_mb}")
            return StagingLocation(StagingKind.DISK, self.disk_path)
        logger.info("The system has enough space to store a Meteor pass on RAM")
        logger.info(f"Free : {free_mb} ; Required : {self.threshold_mb}")
        return StagingLocation(StagingKind.RAM, self.ram_path)
