"""
Failure Policy
==============

Decides what the pacing controller does after each decode attempt.

The policy is a pure function of (error_streak, outcome). It never
touches the cursor or the cache itself.

Rules (e = error streak BEFORE the outcome):
    Success:                      e := 0, advance 1
    Failure, e + 1 > high:        PAUSE for cooldown, hold cursor
    Failure, SOURCE_NOT_FOUND:    PAUSE for cooldown, hold cursor
    Failure, e <= low:            e := e + 1, advance small_skip
                                  (or hold, when retry_in_place is set)
    Failure, low < e:             e := e + 1, advance large_skip

After the cooldown the streak is reset to `resume_streak`.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from framecast.models.outcome import DecodeOutcome, OutcomeKind


logger = logging.getLogger(__name__)


class PolicyAction(str, Enum):
    """
    What to do with the cursor after an outcome.

    Attributes:
        ADVANCE: Move on by one frame after a success
        RETRY: Keep the cursor where it is and decode the same frame again
        SKIP: Move on by the small skip step after an isolated failure
        SKIP_AHEAD: Jump by the large skip step past a bad region
        PAUSE: Stop decoding for the cooldown window
    """

    ADVANCE = "ADVANCE"
    RETRY = "RETRY"
    SKIP = "SKIP"
    SKIP_AHEAD = "SKIP_AHEAD"
    PAUSE = "PAUSE"


@dataclass
class FailureThresholds:
    """
    Tunables for the failure policy.

    Loaded from configuration file.
    """

    low_threshold: int = 2
    high_threshold: int = 6
    small_skip: int = 1
    large_skip: int = 12
    cooldown_seconds: float = 10.0
    resume_streak: int = 0
    retry_in_place: bool = False

    def __post_init__(self) -> None:
        if self.low_threshold < 0:
            raise ValueError("low_threshold must be >= 0")
        if self.high_threshold < self.low_threshold:
            raise ValueError("high_threshold must be >= low_threshold")
        if self.small_skip < 1 or self.large_skip < 1:
            raise ValueError("skip steps must be >= 1")
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")
        if not 0 <= self.resume_streak <= self.high_threshold:
            raise ValueError("resume_streak must be in [0, high_threshold]")

    @classmethod
    def for_fps(cls, fps: float, **overrides) -> "FailureThresholds":
        """Defaults with large_skip = two seconds of video."""
        overrides.setdefault("large_skip", max(1, int(round(fps * 2))))
        return cls(**overrides)


@dataclass(frozen=True)
class PolicyDecision:
    """Result of a policy evaluation."""

    action: PolicyAction
    step: int
    error_streak: int
    pause_seconds: float = 0.0

    def __repr__(self) -> str:
        return (
            f"PolicyDecision({self.action.value}, step={self.step}, "
            f"streak={self.error_streak})"
        )


class FailurePolicy:
    """
    State machine over the error streak.

    Example:
        policy = FailurePolicy(FailureThresholds.for_fps(6))
        decision = policy.decide(error_streak=0, outcome=outcome)
    """

    def __init__(self, thresholds: Optional[FailureThresholds] = None) -> None:
        self.thresholds = thresholds or FailureThresholds()
        logger.info(
            f"FailurePolicy initialized: low={self.thresholds.low_threshold}, "
            f"high={self.thresholds.high_threshold}, "
            f"skip={self.thresholds.small_skip}/{self.thresholds.large_skip}, "
            f"cooldown={self.thresholds.cooldown_seconds}s"
        )

    def decide(self, error_streak: int, outcome: DecodeOutcome) -> PolicyDecision:
        """
        Evaluate one outcome.

        Args:
            error_streak: Consecutive failures before this outcome
            outcome: Result of the decode attempt

        Returns:
            PolicyDecision with the new streak and cursor step
        """
        th = self.thresholds

        if outcome.ok:
            return PolicyDecision(PolicyAction.ADVANCE, step=1, error_streak=0)

        streak = error_streak + 1

        if streak > th.high_threshold or outcome.kind is OutcomeKind.SOURCE_NOT_FOUND:
            return PolicyDecision(
                PolicyAction.PAUSE,
                step=0,
                error_streak=streak,
                pause_seconds=th.cooldown_seconds,
            )

        if error_streak <= th.low_threshold:
            if th.retry_in_place:
                return PolicyDecision(PolicyAction.RETRY, step=0, error_streak=streak)
            return PolicyDecision(PolicyAction.SKIP, step=th.small_skip, error_streak=streak)

        return PolicyDecision(PolicyAction.SKIP_AHEAD, step=th.large_skip, error_streak=streak)

    def resume_streak(self) -> int:
        """Streak value to restore once a pause ends."""
        return self.thresholds.resume_streak
