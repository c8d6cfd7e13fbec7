from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union


class PassDirection(Enum):
    NORTHBOUND = "Northbound"
    SOUTHBOUND = "Southbound"


class PassSide(Enum):
    EAST = "E"
    WEST = "W"


class ReceiveMode(Enum):
    RTL_FM = "rtl_fm"
    GNURADIO = "gnuradio"
    SATDUMP = "satdump"


class StagingKind(Enum):
    RAM = "ram"
    DISK = "disk"


@dataclass(frozen=True)
class PassCapture:
    """Everything the scheduler knows about one pass. Immutable for the run."""

    sat_name: str
    filename_base: str
    tle_file: Path
    epoch_start: int
    capture_time: int
    max_elevation: int
    direction: PassDirection
    side: PassSide

    @property
    def epoch_end(self) -> int:
        return self.epoch_start + self.capture_time


@dataclass(frozen=True)
class ReceiverProfile:
    sample_rate: str
    backend: str


@dataclass(frozen=True)
class StagingLocation:
    kind: StagingKind
    base_path: Path

    @property
    def in_memory(self) -> bool:
        return self.kind is StagingKind.RAM

    def audio_file(self, filename_base: str) -> Path:
        return self.base_path / f"{filename_base}.wav"


@dataclass
class ImageArtifact:
    source: Path
    kind: str
    image_path: Path
    thumb_path: Path


@dataclass
class CaptureResult:
    push_files: list[Path] = field(default_factory=list)
    has_spectrogram: bool = False


@dataclass
class PassRecord:
    pass_start: int
    file_path: str
    daylight_pass: int
    has_spectrogram: int = 0
    has_polar_az_el: int = 0
    has_polar_direction: int = 0
    gain: Union[float, str] = "Automatic"  # configured gain, or "Automatic" when the SDR runs AGC
    sat_type: int = 0
