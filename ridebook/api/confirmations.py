"""Live payment-return screens, kept so their e-mail retry can finish."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Optional

from ridebook.config import settings
from ridebook.domain.enums import ConfirmationState
from ridebook.services.payment_confirmation import PaymentConfirmation

logger = logging.getLogger(__name__)


class ConfirmationRegistry:
    """Successful screens only, oldest evicted once ``max_screens`` is reached."""

    def __init__(self, max_screens: int = settings.confirmation_screens_max) -> None:
        self.max_screens = max_screens
        self._screens: OrderedDict[str, PaymentConfirmation] = OrderedDict()

    def __len__(self) -> int:
        return len(self._screens)

    def get(self, session_id: str) -> Optional[PaymentConfirmation]:
        return self._screens.get(session_id)

    def mount(self, session_id: str, screen: PaymentConfirmation) -> bool:
        """Keep ``screen`` if it confirmed a payment; a reload replaces the old one."""
        if screen.state != ConfirmationState.SUCCESS:
            screen.unmount()
            return False
        previous = self._screens.pop(session_id, None)
        if previous is not None and previous is not screen:
            previous.unmount()
        self._screens[session_id] = screen
        while len(self._screens) > self.max_screens:
            evicted_id, evicted = self._screens.popitem(last=False)
            evicted.unmount()
            logger.debug("Evicted payment screen %s", evicted_id)
        return True

    def unmount(self, session_id: str) -> None:
        screen = self._screens.pop(session_id, None)
        if screen is not None:
            screen.unmount()

    def close(self) -> None:
        for screen in self._screens.values():
            screen.unmount()
        logger.info("Unmounted %d payment screen(s)", len(self._screens))
        self._screens.clear()
