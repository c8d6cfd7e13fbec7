"""Filename canonicalization for decoder output. Pure functions, no filesystem access."""

import re
from pathlib import PurePath

from meteor_rx.base.capture import ReceiveMode

# meteordemod appends the capture time, e.g. spread_321_2021-02-05-19-26-23.jpg
TIMESTAMP_SUFFIX_RE = re.compile(r"_[0-9]+-[0-9]+-[0-9]+-[0-9]+-[0-9]+-[0-9]+(\.[^./]+)$")

# satdump product prefixes, tried in order. Only the first match is removed.
CHANNEL_PREFIXES = (
    "msu_mr_rgb_",
    "rgb_msu_mr_rgb_",
    "rgb_msu_mr_",
    "msu_mr_",
)


def strip_timestamp(name: str) -> str:
    """Drop a trailing `_Y-M-D-h-m-s` group sitting right before the extension."""
    return TIMESTAMP_SUFFIX_RE.sub(r"\1", name)


def strip_channel_prefix(name: str) -> str:
    """Remove one layer of satdump channel prefix."""
    for prefix in CHANNEL_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def canonical_name(name: str, mode: ReceiveMode) -> str:
    if mode is ReceiveMode.SATDUMP:
        return strip_channel_prefix(name)
    return strip_timestamp(name)


def canonical_kind(name: str, mode: ReceiveMode) -> str:
    """Canonical image kind, e.g. `spread_321` or `321_corrected`, used to build output paths."""
    return PurePath(canonical_name(name, mode)).stem


def should_flip(kind: str, mode: ReceiveMode) -> bool:
    """Whether an image of `kind` is rotated when the pass is flipped."""
    if mode is ReceiveMode.SATDUMP:
        return kind.endswith("_corrected")
    return kind.startswith("spread_")
