import asyncio
import logging
from pathlib import Path
from typing import Callable

from meteor_rx.base.config import PipelineConfig
from meteor_rx.base.errors import PublishError, ToolError
from meteor_rx.common.tools import ToolRunner
from meteor_rx.operators.publisher.amqp import AmqpChannel
from meteor_rx.operators.publisher.channel import PushChannel, PushContext

logger = logging.getLogger(__name__)

INSTAGRAM_SOURCE_KIND = "equidistant_321"
INSTAGRAM_GEOMETRY = "1080x1350"


def images_exist(image_output: Path, filename_base: str) -> bool:
    """True when at least one jpg for the pass sits directly in the image output directory."""
    return any(p.is_file() for p in image_output.glob(f"{filename_base}*.jpg"))


class ScriptChannel(PushChannel):
    """A channel backed by one of the station's push scripts."""

    def __init__(self, name: str, enabled: bool, script: Path, runner: ToolRunner):
        super().__init__(enabled)
        self.name = name
        self.script = script
        self.runner = runner

    async def _push(self, args: list) -> None:
        await self.runner.run([self.script, *args], check=True)


class BatchScriptChannel(ScriptChannel):
    """One script call carrying the whole push file list."""

    def __init__(
        self,
        name: str,
        enabled: bool,
        script: Path,
        runner: ToolRunner,
        formatter: Callable[[PushContext], str],
        join_files: bool = False,
    ):
        super().__init__(name, enabled, script, runner)
        self.formatter = formatter
        self.join_files = join_files

    async def publish(self, context: PushContext) -> None:
        files = [str(f) for f in context.push_files]
        if self.join_files:
            files = [" ".join(files)]
        logger.info(f"Pushing image enhancements to {self.name}")
        await self._push([self.formatter(context), *files])


class PerFileScriptChannel(ScriptChannel):
    """One script call per file, spaced by a fixed delay for rate limited services."""

    def __init__(
        self,
        name: str,
        enabled: bool,
        script: Path,
        runner: ToolRunner,
        args_builder: Callable[[PushContext, Path], list],
        delay: float,
    ):
        super().__init__(name, enabled, script, runner)
        self.args_builder = args_builder
        self.delay = delay

    async def publish(self, context: PushContext) -> None:
        logger.info(f"Pushing {len(context.push_files)} images to {self.name}")
        failed = []
        for i, push_file in enumerate(context.push_files):
            if i > 0:
                await asyncio.sleep(self.delay)
            try:
                await self._push(self.args_builder(context, push_file))
            except ToolError as e:
                logger.error(f"Failed to push {push_file.name} to {self.name}: {e}")
                failed.append(push_file.name)
        if failed:
            raise PublishError(f"{len(failed)} of {len(context.push_files)} images failed: {', '.join(failed)}")


class InstagramChannel(ScriptChannel):
    """Posts a single portrait composition of the equidistant colour image."""

    def __init__(self, config: PipelineConfig, runner: ToolRunner):
        super().__init__("instagram", config.push.enable_instagram, config.push.scripts_dir / "push_instagram.py", runner)
        self.convert = config.tools.convert
        self.image_output = config.paths.image_output
        self.web_server_name = config.push.web_server_name

    async def publish(self, context: PushContext) -> None:
        base = context.capture.filename_base
        source = self.image_output / f"{base}-{INSTAGRAM_SOURCE_KIND}.jpg"
        if not source.exists():
            raise PublishError(f"No {INSTAGRAM_SOURCE_KIND} image available for Instagram")
        post_image = self.image_output / f"{base}-instagram.jpg"
        await self.runner.run(
            [
                self.convert,
                source,
                "-resize",
                f"{INSTAGRAM_GEOMETRY}>",
                "-gravity",
                "center",
                "-background",
                "black",
                "-extent",
                INSTAGRAM_GEOMETRY,
                post_image,
            ],
            check=True,
        )
        try:
            logger.info("Pushing image enhancements to Instagram")
            relative = post_image.relative_to(self.image_output)
            await self._push([context.annotation.single_line(), relative, self.web_server_name])
        finally:
            post_image.unlink(missing_ok=True)


class PublishFanout:
    """Dispatch the pass to every enabled channel. One channel failing never stops the others."""

    def __init__(self, config: PipelineConfig, channels: list[PushChannel]):
        self.image_output = config.paths.image_output
        self.channels = channels

    async def publish(self, context: PushContext) -> dict[str, bool]:
        if not images_exist(self.image_output, context.capture.filename_base):
            logger.info("No images found, not pushing anything")
            return {}

        results = {}
        for channel in self.channels:
            if not channel.enabled:
                continue
            try:
                await channel.publish(context)
                results[channel.name] = True
            except Exception as e:
                logger.error(f"Failed to push to {channel.name}: {e}")
                results[channel.name] = False
        return results


def build_channels(config: PipelineConfig, runner: ToolRunner) -> list[PushChannel]:
    """All publish channels in their fixed dispatch order."""
    push = config.push
    scripts = push.scripts_dir
    return [
        BatchScriptChannel(
            "slack",
            push.enable_slack,
            scripts / "push_slack.sh",
            runner,
            lambda ctx: ctx.annotation.slack(push.slack_link_url, ctx.pass_id),
        ),
        BatchScriptChannel(
            "twitter", push.enable_twitter, scripts / "push_twitter.sh", runner, lambda ctx: ctx.annotation.single_line()
        ),
        BatchScriptChannel(
            "facebook",
            push.enable_facebook,
            scripts / "push_facebook.py",
            runner,
            lambda ctx: ctx.annotation.single_line(),
            join_files=True,
        ),
        InstagramChannel(config, runner),
        BatchScriptChannel(
            "matrix", push.enable_matrix, scripts / "push_matrix.sh", runner, lambda ctx: ctx.annotation.single_line()
        ),
        PerFileScriptChannel(
            "email",
            push.enable_email,
            scripts / "push_email.sh",
            runner,
            lambda ctx, f: [push.email_address, f, ctx.annotation.generic()],
            push.delay,
        ),
        PerFileScriptChannel(
            "discord",
            push.enable_discord,
            scripts / "push_discord.sh",
            runner,
            lambda ctx, f: [f, ctx.annotation.generic()],
            push.delay,
        ),
        AmqpChannel(config),
    ]
