"""
End to end processing of a single Meteor-M pass:

1) Resolve the receiver profile (fatal on unknown receiver types).
2) Take the capture lease, preempting competing captures.
3) Pick RAM or disk staging, classify daylight, decide on flipping and build the push annotation.
4) Capture, demodulate and post-process images for the configured receive mode.
5) If any image was produced: polar plots, database record, website thumbnail and publish fanout.
6) Release the lease and report the total processing time.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from meteor_rx.base.capture import PassCapture, PassDirection, PassRecord, ReceiverProfile
from meteor_rx.base.config import PipelineConfig
from meteor_rx.common.tools import ToolRunner
from meteor_rx.common.utils import format_duration
from meteor_rx.operators.astrodynamics.api import DaylightClassifier
from meteor_rx.operators.astrodynamics.plots import PassPlotter
from meteor_rx.operators.capture.api import CaptureOrchestrator
from meteor_rx.operators.database.api import PassRecorder
from meteor_rx.operators.imaging.api import ImagePostProcessor, WebsiteThumbnailSelector
from meteor_rx.operators.publisher.annotation import AUTOMATIC_GAIN, AnnotationFields
from meteor_rx.operators.publisher.api import PublishFanout, build_channels, images_exist
from meteor_rx.operators.publisher.channel import PushChannel, PushContext
from meteor_rx.operators.receiver.api import resolve_receiver_profile
from meteor_rx.operators.receiver.lease import CaptureLeaseManager, ProcessTable
from meteor_rx.operators.receiver.staging import MemoryStagingPolicy

logger = logging.getLogger(__name__)

POLAR_AZ_EL_KIND = ("polar-azel", ".jpg")
POLAR_DIRECTION_KIND = ("polar-direction", ".png")


class PassPipeline:
    def __init__(
        self,
        config: PipelineConfig,
        runner: Optional[ToolRunner] = None,
        ephemeris: Optional[Callable[[int], float]] = None,
        process_table: Optional[ProcessTable] = None,
        memory_reader: Optional[Callable[[], int]] = None,
        channels: Optional[list[PushChannel]] = None,
        plotter: Optional[PassPlotter] = None,
        settle_time: float = 2,
    ):
        self.config = config
        self.runner = runner or ToolRunner(config.receiver.tool_failure_policy)
        self.lease_manager = CaptureLeaseManager(config, process_table)
        self.staging_policy = MemoryStagingPolicy(config, memory_reader)
        self.daylight_classifier = DaylightClassifier(config, ephemeris)
        self.post_processor = ImagePostProcessor(config, self.runner)
        self.capture = CaptureOrchestrator(config, self.runner, self.post_processor, settle_time=settle_time)
        self.thumbnail_selector = WebsiteThumbnailSelector(config)
        self.recorder = PassRecorder(config)
        self.fanout = PublishFanout(config, channels if channels is not None else build_channels(config, self.runner))
        self._plotter = plotter

    @property
    def plotter(self) -> PassPlotter:
        if self._plotter is None:
            self._plotter = PassPlotter(self.config)
        return self._plotter

    def should_flip(self, capture: PassCapture) -> bool:
        return self.config.receiver.flip_on_northbound and capture.direction is PassDirection.NORTHBOUND

    async def run(self, capture: PassCapture) -> Optional[int]:
        """Process one pass. Returns the decoded pass id, or None when nothing was recorded."""
        start_time = time.monotonic()
        logger.info(f"Processing {capture.sat_name} pass {capture.filename_base}")

        profile = resolve_receiver_profile(self.config.receiver.type)
        lease = await asyncio.to_thread(self.lease_manager.acquire, capture)
        try:
            return await self._process(capture, profile)
        finally:
            await asyncio.to_thread(self.lease_manager.release, lease)
            elapsed = format_duration(time.monotonic() - start_time)
            logger.info(f"Total processing time: {elapsed}")

    async def _process(self, capture: PassCapture, profile: ReceiverProfile) -> Optional[int]:
        staging = self.staging_policy.choose()
        daylight = self.daylight_classifier.classify(capture.epoch_start)
        flip = self.should_flip(capture)
        if flip:
            logger.info("Northbound pass, images will be flipped")
        annotation = AnnotationFields.from_capture(capture, self.config, daylight.sun_elevation)

        result = await self.capture.run(capture, profile, staging, annotation, flip)
        if result is None:
            return None

        image_output = self.config.paths.image_output
        if not images_exist(image_output, capture.filename_base):
            logger.info("No images found, not pushing anything")
            return None

        has_polar_az_el, has_polar_direction = await self._plot_polar(capture)

        record = PassRecord(
            pass_start=capture.epoch_start,
            file_path=capture.filename_base,
            daylight_pass=daylight.daylight,
            has_spectrogram=int(result.has_spectrogram),
            has_polar_az_el=int(has_polar_az_el),
            has_polar_direction=int(has_polar_direction),
            gain=self.config.receiver.gain or AUTOMATIC_GAIN,
        )
        await asyncio.to_thread(self.recorder.init_db)
        pass_id = await self.recorder.record(record)
        self.thumbnail_selector.select(capture.filename_base)

        context = PushContext(
            capture=capture,
            annotation=annotation,
            push_files=result.push_files,
            pass_id=pass_id,
            daylight=daylight.daylight,
        )
        results = await self.fanout.publish(context)
        failed = [name for name, ok in results.items() if not ok]
        if failed:
            logger.warning(f"Publishing failed for: {', '.join(failed)}")
        return pass_id

    async def _plot_polar(self, capture: PassCapture) -> tuple[bool, bool]:
        features = self.config.features
        plots = []
        if features.produce_polar_az_el:
            plots.append((self.plotter.plot_az_el, POLAR_AZ_EL_KIND))
        if features.produce_polar_direction:
            plots.append((self.plotter.plot_direction, POLAR_DIRECTION_KIND))

        produced = set()
        for plot, (kind, suffix) in plots:
            image: Path = self.post_processor.image_path(capture.filename_base, kind, suffix)
            thumb: Path = self.post_processor.thumb_path(capture.filename_base, kind, suffix)
            try:
                image.parent.mkdir(parents=True, exist_ok=True)
                thumb.parent.mkdir(parents=True, exist_ok=True)
                await plot(capture, image)
                await self.post_processor.make_thumbnail(image, thumb)
                produced.add(kind)
            except Exception as e:
                logger.error(f"Failed to produce {kind} plot: {e}")
        return POLAR_AZ_EL_KIND[0] in produced, POLAR_DIRECTION_KIND[0] in produced
