class MeteorRxError(Exception):
    """Base class for pipeline errors."""


class ConfigError(MeteorRxError):
    """Invalid or unsupported configuration. Always fatal for the run."""


class ToolError(MeteorRxError):
    """An external tool could not be run or exited non-zero under a checking policy."""

    def __init__(self, cmd: list[str], returncode: int, output: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.output = output
        super().__init__(f"{cmd[0]} exited with code {returncode}")


class PublishError(MeteorRxError):
    """A single publish channel failed."""
