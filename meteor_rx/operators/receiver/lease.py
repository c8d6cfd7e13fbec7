"""
Exclusive capture lease. The newest pass always wins: acquiring the lease terminates every competing capture
process (NOAA rtl_fm captures, gnuradio APT decoders, satdump) no matter which pass started it, then force-revokes
whatever lease was previously held. There is no queueing and no priority comparison.
"""

import json
import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from meteor_rx.base.capture import PassCapture
from meteor_rx.base.config import PipelineConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureFamily:
    label: str
    pattern: str
    sig: int


@dataclass(frozen=True)
class CaptureLease:
    pid: int
    filename_base: str


class ProcessTable:
    """Process lookup and termination by command-line pattern."""

    def find(self, pattern: str) -> list[int]:
        result = subprocess.run(["pgrep", "-f", pattern], stdout=subprocess.PIPE, stderr=subprocess.DEVNULL)
        own_pid = os.getpid()
        return [int(pid) for pid in result.stdout.decode("utf-8").split() if int(pid) != own_pid]

    def terminate(self, pid: int, sig: int) -> None:
        try:
            os.kill(pid, sig)
        except ProcessLookupError:
            logger.debug(f"Process {pid} exited before it could be signalled")


class CaptureLeaseManager:
    def __init__(self, config: PipelineConfig, process_table: Optional[ProcessTable] = None):
        self.lease_file: Path = config.paths.lease_file
        self.process_table = process_table or ProcessTable()
        self.families = [
            CaptureFamily("rtl_fm noaa", "rtl_fm", signal.SIGKILL),
            CaptureFamily("gnuradio noaa", f"{config.receiver.type}_noaa_apt_rx.py", signal.SIGTERM),
            CaptureFamily("satdump", "satdump", signal.SIGKILL),
        ]

    def preempt(self) -> list[int]:
        """Terminate every running process of every competing capture family."""
        terminated = []
        for family in self.families:
            pids = self.process_table.find(family.pattern)
            if not pids:
                continue
            logger.info(f"There is an already running {family.label} capture instance, preempting it for this pass")
            for pid in pids:
                self.process_table.terminate(pid, family.sig)
                terminated.append(pid)
        return terminated

    def read_lease(self) -> Optional[CaptureLease]:
        if not self.lease_file.exists():
            return None
        try:
            with open(self.lease_file, "r") as f:
                data = json.load(f)
            return CaptureLease(pid=int(data["pid"]), filename_base=data["filename_base"])
        except (ValueError, KeyError) as e:
            logger.warning(f"Ignoring unreadable lease file {self.lease_file}: {e}")
            return None

    def acquire(self, capture: PassCapture) -> CaptureLease:
        """Take the capture lease for `capture`, revoking any holder."""
        self.preempt()
        previous = self.read_lease()
        if previous is not None:
            logger.info(f"Revoking capture lease held by pid {previous.pid} for {previous.filename_base}")

        lease = CaptureLease(pid=os.getpid(), filename_base=capture.filename_base)
        self.lease_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lease_file, "w") as f:
            json.dump(
                {
                    "pid": lease.pid,
                    "filename_base": lease.filename_base,
                    "acquired": datetime.now(timezone.utc).isoformat(),
                },
                f,
            )
        logger.info(f"Capture lease acquired for {capture.filename_base}")
        return lease

    def release(self, lease: CaptureLease) -> bool:
        """Drop the lease file unless a newer pass has already taken it over."""
        current = self.read_lease()
        if current != lease:
            logger.info(f"Capture lease for {lease.filename_base} was revoked, nothing to release")
            return False
        self.lease_file.unlink()
        logger.info(f"Capture lease released for {lease.filename_base}")
        return True
