"""Confirmation gates for the traffic switch.

A gate is the only suspension point of a release. It holds no cluster
locks: whatever it decides, the new slot keeps running.
"""

from __future__ import annotations

import logging
import queue
import sys
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Optional, TextIO

from bluegreen.delivery.blue_green import Release

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class GateDecision(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


class ConfirmationGate(ABC):
    """Asks an operator whether traffic may move to the new slot."""

    @abstractmethod
    def wait_for_confirmation(self, release: Release, timeout_seconds: float) -> GateDecision:
        """Block for at most ``timeout_seconds`` and return the decision."""


class AutoApproveGate(ConfirmationGate):
    """Approves immediately. For pipelines that confirm out of band."""

    def wait_for_confirmation(self, release: Release, timeout_seconds: float) -> GateDecision:
        logger.info("Auto-approving switch to %s", release.target_color.value)
        return GateDecision.APPROVED


class CallbackGate(ConfirmationGate):
    """Polls ``callback(release)`` until it returns True/False or time runs out.

    The callback returns ``None`` while the operator has not decided yet.
    """

    def __init__(
        self,
        callback: Callable[[Release], Optional[bool]],
        poll_interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.callback = callback
        self.poll_interval_seconds = poll_interval_seconds
        self._clock = clock
        self._sleep = sleep

    def wait_for_confirmation(self, release: Release, timeout_seconds: float) -> GateDecision:
        deadline = self._clock() + timeout_seconds
        while True:
            answer = self.callback(release)
            if answer is True:
                return GateDecision.APPROVED
            if answer is False:
                return GateDecision.REJECTED
            now = self._clock()
            if now >= deadline:
                return GateDecision.TIMED_OUT
            self._sleep(min(self.poll_interval_seconds, deadline - now))


class PromptGate(ConfirmationGate):
    """Asks on the terminal. Anything but ``y``/``yes`` rejects."""

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output: TextIO | None = None,
    ) -> None:
        self._input = input_fn
        self._output = output

    def wait_for_confirmation(self, release: Release, timeout_seconds: float) -> GateDecision:
        out = self._output or sys.stdout
        prompt = (
            f"Switch traffic for {release.app_name} to {release.target_color.value} "
            f"({release.image_reference})? Deletes {release.other_deployment_name}. [y/N] "
        )
        answers: queue.Queue = queue.Queue(maxsize=1)

        def _ask() -> None:
            try:
                answers.put(self._input(prompt))
            except EOFError:
                answers.put("")

        # Daemon thread: an unanswered prompt must not keep the process alive.
        threading.Thread(target=_ask, name="bluegreen-confirm", daemon=True).start()
        try:
            answer = answers.get(timeout=timeout_seconds)
        except queue.Empty:
            out.write("\nNo answer, switch not confirmed.\n")
            return GateDecision.TIMED_OUT
        if answer.strip().lower() in ("y", "yes"):
            return GateDecision.APPROVED
        return GateDecision.REJECTED
