"""
User feedback seam for the phase workflow.

The board asks the acting user to confirm completion emails and shows
error / info messages. Both go through an ``ActionFeedback`` so the
workflow runs headless in servers and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from residentone.phases.registry import PhaseKind, display_name
from residentone.phases.view import TeamMemberRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionPrompt:
    """Question asked once before emailing downstream assignees."""

    completed_phase: PhaseKind
    recipients: tuple[TeamMemberRef, ...]
    next_phases: tuple[PhaseKind, ...] = ()

    @property
    def text(self) -> str:
        names = ", ".join(r.name for r in self.recipients)
        plural = "s" if len(self.recipients) > 1 else ""
        return (
            f"{display_name(self.completed_phase)} is complete. "
            f"Send email notification{plural} to {names}?"
        )


class ActionFeedback(Protocol):
    def confirm(self, prompt: CompletionPrompt) -> bool:
        ...

    def error(self, message: str) -> None:
        ...

    def info(self, message: str) -> None:
        ...


class LoggingFeedback:
    """Non-interactive feedback: answers prompts with a fixed value and logs messages."""

    def __init__(self, confirm_default: bool = True):
        self.confirm_default = confirm_default

    def confirm(self, prompt: CompletionPrompt) -> bool:
        logger.info("Confirm (auto=%s): %s", self.confirm_default, prompt.text,
                    extra={"phase": prompt.completed_phase.value})
        return self.confirm_default

    def error(self, message: str) -> None:
        logger.warning(message)

    def info(self, message: str) -> None:
        logger.info(message)
