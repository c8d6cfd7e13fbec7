"""Sun position for the ground station, used to flag daylight passes."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from skyfield.api import Loader, wgs84

from meteor_rx.base.config import PipelineConfig

logger = logging.getLogger(__name__)

# Offset from AOS approximating the pass midpoint (seconds)
MIDPOINT_OFFSET = 90


class SunEphemeris:
    def __init__(self, config: PipelineConfig, ephemeris_file: str = "de421.bsp"):
        self._loader = Loader(str(config.paths.ephemeris_dir))
        self._timescale = self._loader.timescale()
        self._ephemeris_file = ephemeris_file
        self._planets = None
        self._sensor = wgs84.latlon(
            latitude_degrees=config.station.latitude,
            longitude_degrees=config.station.longitude,
            elevation_m=config.station.altitude,
        )

    def _get_planets(self):
        if self._planets is None:
            self._planets = self._loader(self._ephemeris_file)
        return self._planets

    def elevation(self, timestamp: int) -> int:
        """Sun elevation above the station horizon at Unix `timestamp`, rounded to whole degrees."""
        planets = self._get_planets()
        t = self._timescale.from_datetime(datetime.fromtimestamp(timestamp, tz=timezone.utc))
        observer = planets["earth"] + self._sensor
        alt, _, _ = observer.at(t).observe(planets["sun"]).apparent().altaz()
        return int(round(alt.degrees))

    def __call__(self, timestamp: int) -> int:
        return self.elevation(timestamp)


@dataclass(frozen=True)
class Daylight:
    sun_elevation: Optional[float]  # None when the ephemeris could not be evaluated
    daylight: int


class DaylightClassifier:
    def __init__(self, config: PipelineConfig, ephemeris: Optional[Callable[[int], float]] = None):
        self.sun_min_elevation = config.receiver.sun_min_elevation
        self.ephemeris = ephemeris or SunEphemeris(config)

    def classify(self, epoch_start: int) -> Daylight:
        """daylight is 1 only when the sun is strictly above the configured minimum elevation.

        An ephemeris failure never aborts the pass, it is classified as night with an unknown sun elevation.
        """
        try:
            sun_elevation = self.ephemeris(epoch_start + MIDPOINT_OFFSET)
        except Exception as e:
            logger.error(f"Failed to compute sun elevation, assuming night pass: {e}")
            return Daylight(sun_elevation=None, daylight=0)
        daylight = 1 if sun_elevation > self.sun_min_elevation else 0
        logger.info(f"Sun elevation {sun_elevation}°, daylight pass: {daylight}")
        return Daylight(sun_elevation=sun_elevation, daylight=daylight)
