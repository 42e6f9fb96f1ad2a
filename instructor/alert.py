"""
Debounced "needs help" alert with a flashing indicator.
"""
from __future__ import annotations
import logging

from instructor.models import NEEDS_HELP, AlertStatus

logger = logging.getLogger(__name__)


class AlertStateMachine:
    """
    Latch an alert once enough Needs Help classifications have been seen.

    - record(classification): count Needs Help; latch when the count reaches the threshold
    - tick(): flip flash_on, only while latched
    - acknowledge(): unlatch, keep the count
    - reset(): unlatch and zero the count (log cleared / session restarted)

    Latching is one-shot: nothing but acknowledge/reset unlatches it.
    """
    def __init__(self, threshold: int = 5):
        self.threshold = int(threshold)
        self.needs_help_count = 0
        self.active = False
        self.flash_on = False

    def record(self, classification: str) -> bool:
        """Feed one classification; returns True when this call latched the alert."""
        if classification != NEEDS_HELP:
            return False
        self.needs_help_count += 1
        if not self.active and self.needs_help_count >= self.threshold:
            self.active = True
            logger.info(f"[alert] latched after {self.needs_help_count} Needs Help records")
            return True
        return False

    def tick(self) -> bool:
        if not self.active:
            return self.flash_on
        self.flash_on = not self.flash_on
        return self.flash_on

    def acknowledge(self) -> None:
        if self.active:
            logger.info("[alert] acknowledged")
        self.active = False
        self.flash_on = False

    def reset(self) -> None:
        self.acknowledge()
        self.needs_help_count = 0

    def status(self) -> AlertStatus:
        return AlertStatus(active=self.active, flash_on=self.flash_on)
