import logging
import shutil
from pathlib import Path
from typing import Optional

from meteor_rx.base.capture import ImageArtifact, ReceiveMode
from meteor_rx.base.config import PipelineConfig
from meteor_rx.common.tools import ToolRunner
from meteor_rx.operators.imaging.naming import canonical_kind, should_flip

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = 300  # (px) long edge

# Website thumbnail candidates, best first
WEBSITE_THUMBNAIL_SUFFIXES = (
    "-321-corrected.jpg",
    "-equidistant_321.jpg",
    "-mercator_321.jpg",
    "-spread_321.jpg",
    "-spread_123.jpg",
    "-221-corrected.jpg",
    "-equidistant_221.jpg",
    "-mercator_321.jpg",
    "-spread_221.jpg",
    "-equidistant_654.jpg",
    "-mercator_654.jpg",
    "-spread_654.jpg",
    "-Thermal_Channel_corrected.jpg",
    "-spread_rain.jpg",
    "-spread_IR.jpg",
)


class ImagePostProcessor:
    """Canonicalize, flip, annotate, thumbnail and relocate decoder output into the image namespace."""

    def __init__(self, config: PipelineConfig, runner: ToolRunner):
        self.config = config
        self.runner = runner
        self.tools = config.tools
        self.quality = config.receiver.image_quality
        self.image_output: Path = config.paths.image_output
        self.thumb_output: Path = config.paths.thumb_output

    def image_path(self, filename_base: str, kind: str, suffix: str = ".jpg") -> Path:
        return self.image_output / f"{filename_base}-{kind}{suffix}"

    def thumb_path(self, filename_base: str, kind: str, suffix: str = ".jpg") -> Path:
        return self.thumb_output / f"{filename_base}-{kind}{suffix}"

    async def make_thumbnail(self, src: Path, dst: Path) -> None:
        await self.runner.run([self.tools.thumbnail, THUMBNAIL_SIZE, src, dst])

    async def flip(self, image: Path, mode: ReceiveMode) -> None:
        cmd = [self.tools.convert]
        if mode is not ReceiveMode.SATDUMP:
            cmd += ["-quality", "100"]
        cmd += ["-rotate", "180", image, image]
        await self.runner.run(cmd)

    def _relocate(self, src: Path, dst: Path) -> bool:
        if not src.exists():
            logger.warning(f"Expected {src.name} was not produced, skipping")
            return False
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(src), str(dst))
        return True

    async def process(
        self, work_dir: Path, filename_base: str, mode: ReceiveMode, flip: bool = False
    ) -> list[ImageArtifact]:
        """Process every decoder image in `work_dir`, returning artifacts in discovery order.

        Direct/streaming decoders emit jpg files that are annotated in place; satdump emits png files that are
        annotated into a jpg and then discarded.
        """
        pattern = "*.png" if mode is ReceiveMode.SATDUMP else "*.jpg"
        raw_images = sorted(work_dir.glob(pattern))
        logger.info(f"Annotating {len(raw_images)} images and creating thumbnails")

        artifacts = []
        for raw in raw_images:
            kind = canonical_kind(raw.name, mode)
            source = raw.with_name(f"{kind}{raw.suffix}")
            if source != raw:
                raw.rename(source)

            if flip and should_flip(kind, mode):
                await self.flip(source, mode)

            annotated = source.with_name(f"{kind}.jpg")
            thumb = source.with_name(f"{kind}-thumb.jpg")
            await self.runner.run([self.tools.annotate, source, annotated, self.quality])
            await self.make_thumbnail(source, thumb)

            artifact = ImageArtifact(
                source=source,
                kind=kind,
                image_path=self.image_path(filename_base, kind),
                thumb_path=self.thumb_path(filename_base, kind),
            )
            moved = self._relocate(annotated, artifact.image_path)
            self._relocate(thumb, artifact.thumb_path)
            if source.exists() and source != annotated:
                source.unlink()
            if moved:
                artifacts.append(artifact)
        return artifacts


class WebsiteThumbnailSelector:
    def __init__(self, config: PipelineConfig):
        self.thumb_output: Path = config.paths.thumb_output

    def website_thumbnail_path(self, filename_base: str) -> Path:
        return self.thumb_output / f"{filename_base}-website-thumbnail.jpg"

    def select(self, filename_base: str) -> Optional[Path]:
        """Copy the best available thumbnail to the website thumbnail path. First existing candidate wins."""
        for suffix in WEBSITE_THUMBNAIL_SUFFIXES:
            candidate = self.thumb_output / f"{filename_base}{suffix}"
            if candidate.is_file():
                target = self.website_thumbnail_path(filename_base)
                shutil.copyfile(candidate, target)
                logger.info(f"Website thumbnail set from {candidate.name}")
                return target
        logger.info("No website thumbnail candidate found")
        return None
