"""
Drives one receive mode through SelectMode -> Record -> Demodulate -> Cleanup -> Done.

    * rtl_fm: record audio with rtl_fm, optional spectrogram, demodulate with meteordemod.
    * gnuradio: record audio with a gnuradio flowgraph, demodulate with meteordemod.
    * satdump: satdump records and decodes in a single live run.

External tools are not checked for success here (unless the runner's policy is strict). A failed decode simply
produces no images, which is noticed later when nothing shows up in the image output.
"""

import asyncio
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Optional

from meteor_rx.base.capture import CaptureResult, PassCapture, ReceiveMode, ReceiverProfile, StagingLocation
from meteor_rx.base.config import PipelineConfig
from meteor_rx.common.tools import ToolRunner
from meteor_rx.operators.imaging.api import ImagePostProcessor
from meteor_rx.operators.publisher.annotation import AnnotationFields

logger = logging.getLogger(__name__)

METEORDEMOD_SATELLITE = "METEOR-M-2-3"
SATDUMP_IMAGE_DIR = "MSU-MR"


class CaptureState(Enum):
    SELECT_MODE = "select_mode"
    RECORD = "record"
    DEMODULATE = "demodulate"
    CLEANUP = "cleanup"
    DONE = "done"


class CaptureOrchestrator:
    def __init__(
        self, config: PipelineConfig, runner: ToolRunner, post_processor: ImagePostProcessor, settle_time: float = 2
    ):
        self.config = config
        self.runner = runner
        self.post_processor = post_processor
        self.tools = config.tools
        self.receiver = config.receiver
        self.settle_time = settle_time
        self.state: Optional[CaptureState] = None
        self.state_history: list[CaptureState] = []

    def _enter(self, state: CaptureState) -> None:
        self.state = state
        self.state_history.append(state)
        logger.debug(f"Capture state: {state.value}")

    def select_mode(self) -> Optional[ReceiveMode]:
        self._enter(CaptureState.SELECT_MODE)
        try:
            return ReceiveMode(self.receiver.mode)
        except ValueError:
            logger.error(f"Receiver type '{self.receiver.mode}' not valid")
            return None

    def work_dir(self, capture: PassCapture) -> Path:
        return self.config.paths.work_dir / capture.filename_base

    async def run(
        self,
        capture: PassCapture,
        profile: ReceiverProfile,
        staging: StagingLocation,
        annotation: AnnotationFields,
        flip: bool = False,
    ) -> Optional[CaptureResult]:
        """Capture and decode one pass. Returns None when the configured mode is unknown."""
        self.state_history = []
        mode = self.select_mode()
        if mode is None:
            return None

        work_dir = self.work_dir(capture)
        work_dir.mkdir(parents=True, exist_ok=True)
        try:
            if mode is ReceiveMode.SATDUMP:
                result = await self._run_satdump(capture, profile, work_dir, flip)
            else:
                result = await self._run_demod(capture, mode, staging, work_dir, annotation, flip)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
        self._enter(CaptureState.DONE)
        return result

    def meteordemod_command(self, capture: PassCapture, audio_file: Path) -> list:
        cmd = [self.tools.meteordemod, "-m", "oqpsk", "-diff", "1"]
        if self.receiver.interleaving_80k:
            cmd += ["-int", "1", "-s", "80000"]
        else:
            cmd += ["-s", "72000"]
        cmd += ["-sat", METEORDEMOD_SATELLITE, "-t", capture.tle_file, "-f", "jpg", "-i", audio_file]
        return cmd

    async def _run_demod(
        self,
        capture: PassCapture,
        mode: ReceiveMode,
        staging: StagingLocation,
        work_dir: Path,
        annotation: AnnotationFields,
        flip: bool,
    ) -> CaptureResult:
        result = CaptureResult()
        audio_file = staging.audio_file(capture.filename_base)
        audio_file.parent.mkdir(parents=True, exist_ok=True)

        self._enter(CaptureState.RECORD)
        recorder = self.tools.record_rtl_fm if mode is ReceiveMode.RTL_FM else self.tools.record_gnuradio
        logger.info(f"Starting {mode.value} record")
        await self.runner.run([recorder, capture.capture_time, audio_file])
        logger.info("Waiting for files to close")
        await asyncio.sleep(self.settle_time)

        if mode is ReceiveMode.RTL_FM and self.config.features.produce_spectrogram:
            result.has_spectrogram = await self._produce_spectrogram(capture, audio_file, annotation)

        self._enter(CaptureState.DEMODULATE)
        logger.info("Running MeteorDemod to demodulate OQPSK file, rectify (spread) images and composites")
        await self.runner.run(self.meteordemod_command(capture, audio_file), cwd=work_dir)

        self._enter(CaptureState.CLEANUP)
        for pattern in ("*.gcp", "*.bmp"):
            for byproduct in work_dir.glob(pattern):
                byproduct.unlink()
        self._dispose_audio(audio_file, staging)

        artifacts = await self.post_processor.process(work_dir, capture.filename_base, mode, flip)
        result.push_files = [a.image_path for a in artifacts]
        return result

    async def _produce_spectrogram(self, capture: PassCapture, audio_file: Path, annotation: AnnotationFields) -> bool:
        logger.info("Producing spectrogram")
        image = self.post_processor.image_path(capture.filename_base, "spectrogram", ".png")
        thumb = self.post_processor.thumb_path(capture.filename_base, "spectrogram", ".png")
        image.parent.mkdir(parents=True, exist_ok=True)
        thumb.parent.mkdir(parents=True, exist_ok=True)
        await self.runner.run(
            [self.tools.spectrogram, audio_file, image, capture.sat_name, annotation.spectrogram_text()]
        )
        await self.post_processor.make_thumbnail(image, thumb)
        return True

    def _dispose_audio(self, audio_file: Path, staging: StagingLocation) -> None:
        if not audio_file.exists():
            return
        if self.receiver.delete_audio:
            logger.info("Deleting audio files")
            audio_file.unlink()
        elif staging.in_memory:
            logger.info("Moving audio files out to persistent storage")
            target = self.config.paths.audio_output / audio_file.name
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(audio_file), str(target))

    def satdump_pipeline(self) -> str:
        return "meteor_m2-x_lrpt_80k" if self.receiver.interleaving_80k else "meteor_m2-x_lrpt"

    def satdump_command(self, capture: PassCapture, profile: ReceiverProfile, work_dir: Path) -> list:
        if profile.backend == "rtlsdr":
            gain_option = ["--source_id", self.receiver.sdr_device_id, "--gain"]
        else:
            gain_option = ["--general_gain"]
        return [
            self.tools.satdump,
            "live",
            self.satdump_pipeline(),
            work_dir,
            "--source",
            profile.backend,
            "--samplerate",
            profile.sample_rate,
            "--frequency",
            f"{self.receiver.frequency_mhz:g}e6",
            *gain_option,
            f"{self.receiver.gain:g}",
            "--timeout",
            capture.capture_time,
            "--finish_processing",
        ]

    async def _run_satdump(
        self, capture: PassCapture, profile: ReceiverProfile, work_dir: Path, flip: bool
    ) -> CaptureResult:
        self._enter(CaptureState.RECORD)
        logger.info("Starting SatDump live recording and decoding")
        self._enter(CaptureState.DEMODULATE)
        await self.runner.run(self.satdump_command(capture, profile, work_dir), cwd=work_dir)

        self._enter(CaptureState.CLEANUP)
        for byproduct in ("satdump.logs", f"{self.satdump_pipeline()}.cadu", "dataset.json"):
            (work_dir / byproduct).unlink(missing_ok=True)
        logger.info("Waiting for files to close")
        await asyncio.sleep(self.settle_time)

        image_dir = work_dir / SATDUMP_IMAGE_DIR
        if not image_dir.is_dir():
            logger.info(f"SatDump produced no {SATDUMP_IMAGE_DIR} directory")
            return CaptureResult()
        for f in image_dir.iterdir():
            if f.is_file() and "projected" not in f.name and "corrected" not in f.name:
                f.unlink()

        artifacts = await self.post_processor.process(image_dir, capture.filename_base, ReceiveMode.SATDUMP, flip)
        shutil.rmtree(image_dir, ignore_errors=True)
        return CaptureResult(push_files=[a.image_path for a in artifacts])
