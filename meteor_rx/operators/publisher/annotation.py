"""
Push annotation text (email subject, chat message, post caption). This is NOT the annotation drawn on the images,
which is done by the external annotate tool.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from meteor_rx.base.capture import PassCapture
from meteor_rx.base.config import PipelineConfig

CAPTURE_START_FORMAT = "%d-%m-%Y %H:%M"
AUTOMATIC_GAIN = "Automatic"


def gain_label(gain: Union[int, float, str]) -> str:
    """Configured gain as shown to people; zero means the SDR runs automatic gain."""
    if float(gain) == 0:
        return AUTOMATIC_GAIN
    return f"{float(gain):g}"


@dataclass(frozen=True)
class AnnotationFields:
    sat_name: str
    capture_start: str
    max_elevation: int
    side: str
    sun_elevation: Optional[float]
    gain: str
    direction: str
    ground_station: str = ""

    @classmethod
    def from_capture(
        cls, capture: PassCapture, config: PipelineConfig, sun_elevation: Optional[float]
    ) -> "AnnotationFields":
        return cls(
            sat_name=capture.sat_name,
            capture_start=datetime.fromtimestamp(capture.epoch_start).strftime(CAPTURE_START_FORMAT),
            max_elevation=capture.max_elevation,
            side=capture.side.value,
            sun_elevation=sun_elevation,
            gain=gain_label(config.receiver.gain),
            direction=capture.direction.value,
            ground_station=config.station.label,
        )

    @property
    def sun_elevation_text(self) -> str:
        return "?" if self.sun_elevation is None else f"{self.sun_elevation}"

    def _body(self) -> str:
        return (
            f"{self.sat_name} {self.capture_start}"
            f" Max Elev: {self.max_elevation}° {self.side}"
            f" Sun Elevation: {self.sun_elevation_text}°"
            f" Gain: {self.gain}"
            f" | {self.direction}"
        )

    def generic(self) -> str:
        """Email and Discord."""
        header = f"Ground Station: {self.ground_station}\n" if self.ground_station else ""
        return header + self._body()

    def single_line(self) -> str:
        """Twitter, Facebook, Instagram and Matrix."""
        header = f"Ground Station: {self.ground_station} " if self.ground_station else ""
        return header + self._body()

    def slack(self, link_url: str, pass_id: int) -> str:
        header = f"Ground Station: {self.ground_station}\n " if self.ground_station else ""
        return (
            f"{header}{self.sat_name} {self.capture_start}\n"
            f" Max Elev: {self.max_elevation}° {self.side}\n"
            f" Sun Elevation: {self.sun_elevation_text}°\n"
            f" Gain: {self.gain} | {self.direction}\n"
            f" <{link_url}?pass_id={pass_id}>\n"
        )

    def spectrogram_text(self) -> str:
        return f"{self.capture_start} @ {self.max_elevation}°"
