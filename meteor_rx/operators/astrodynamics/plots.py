import logging
from datetime import datetime, timezone
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from skyfield.api import EarthSatellite, load, wgs84

from meteor_rx.base.capture import PassCapture
from meteor_rx.base.config import PipelineConfig

logger = logging.getLogger(__name__)

TRACK_STEP = 10  # (seconds) between track samples


class PassPlotter:
    """Polar plots of a pass computed from its TLE: the az/el track and the overall pass direction."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self._timescale = load.timescale()
        self._sensor = wgs84.latlon(
            latitude_degrees=config.station.latitude,
            longitude_degrees=config.station.longitude,
            elevation_m=config.station.altitude,
        )
        self.min_el = config.receiver.sat_min_elevation

    def load_satellite(self, tle_file: Path, sat_name: str) -> EarthSatellite:
        satellites = load.tle_file(str(tle_file))
        for satellite in satellites:
            if satellite.name.strip() == sat_name.strip():
                return satellite
        raise ValueError(f"Satellite {sat_name!r} not found in {tle_file}")

    def compute_track(self, capture: PassCapture) -> tuple[np.ndarray, np.ndarray]:
        """Azimuth and elevation (degrees) sampled across the capture window."""
        satellite = self.load_satellite(capture.tle_file, capture.sat_name)
        start = datetime.fromtimestamp(capture.epoch_start, tz=timezone.utc)
        seconds = np.arange(0, capture.capture_time + TRACK_STEP, TRACK_STEP)
        times = self._timescale.utc(start.year, start.month, start.day, start.hour, start.minute, start.second + seconds)
        alt, az, _ = (satellite - self._sensor).at(times).altaz()
        return az.degrees, alt.degrees

    def _setup_polar_axes(self, ax):
        ax.set_theta_zero_location("N")
        ax.set_theta_direction(-1)
        ax.set_thetagrids(np.arange(0, 360, 45), [f"{i}°" for i in range(0, 360, 45)])
        ax.set_yticks(np.arange(0, 91, 15))
        ax.set_yticklabels([f"{90-e}°" for e in np.arange(0, 91, 15)])
        ax.set_ylim(0, 90)

    async def plot_az_el(self, capture: PassCapture, filename: Path) -> Path:
        logger.info(f"Plotting azimuth/elevation for {capture.filename_base}")
        az, el = self.compute_track(capture)
        visible = el >= 0

        fig = plt.figure(figsize=(6, 6))
        ax = fig.add_subplot(projection="polar")
        self._setup_polar_axes(ax)
        ax.plot(np.radians(az[visible]), 90 - el[visible], "o-", markersize=2, label="Track")
        ring = np.linspace(0, 2 * np.pi, 180)
        ax.plot(ring, np.full_like(ring, 90 - self.min_el), "--", linewidth=0.8, label="Min elevation")
        if visible.any():
            first, last = np.flatnonzero(visible)[[0, -1]]
            ax.annotate("AOS", xy=(np.radians(az[first]), 90 - el[first]), size=8, ha="center")
            ax.annotate("LOS", xy=(np.radians(az[last]), 90 - el[last]), size=8, ha="center")
        ax.set_title(f"{capture.sat_name} - max elevation {capture.max_elevation}°")
        ax.legend(loc="upper right", bbox_to_anchor=(1.1, 1.1), fontsize="small")

        fig.savefig(filename, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return filename

    async def plot_direction(self, capture: PassCapture, filename: Path) -> Path:
        logger.info(f"Plotting pass direction for {capture.filename_base}")
        az, el = self.compute_track(capture)

        fig = plt.figure(figsize=(6, 6))
        ax = fig.add_subplot(projection="polar")
        self._setup_polar_axes(ax)
        ax.plot(np.radians(az), 90 - np.clip(el, 0, 90), linewidth=1)
        ax.annotate(
            "",
            xy=(np.radians(az[-1]), 90 - max(el[-1], 0)),
            xytext=(np.radians(az[0]), 90 - max(el[0], 0)),
            arrowprops=dict(arrowstyle="->", linewidth=2),
        )
        ax.set_title(f"{capture.sat_name} {capture.direction.value} ({capture.side.value})")

        fig.savefig(filename, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return filename
