from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from meteor_rx.base.capture import PassCapture
from meteor_rx.operators.publisher.annotation import AnnotationFields


@dataclass
class PushContext:
    capture: PassCapture
    annotation: AnnotationFields
    push_files: list[Path] = field(default_factory=list)
    pass_id: Optional[int] = None
    daylight: int = 0


class PushChannel(ABC):
    name: str = "channel"

    def __init__(self, enabled: bool):
        self.enabled = enabled

    @abstractmethod
    async def publish(self, context: PushContext) -> None:
        """Push the pass artifacts. Raise on failure."""
        raise NotImplementedError
