"""
Visitor Insight - Status Reporter v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Reports which answer backend is active, for UI badges and health checks.
"""

import logging

from .core.providers.gateway import ProviderGateway
from .core.types import ProviderKind, ProviderStatus
from .errors import InsightError

logger = logging.getLogger(__name__)


class StatusReporter:
    """Answers "which backend, is it up, which model"."""

    def __init__(self, gateway: ProviderGateway):
        self.gateway = gateway

    def report(self, probe: bool = False) -> ProviderStatus:
        """
        Describe the configured backend.

        Args:
            probe: Ping the backend rather than trusting configuration

        Returns:
            ProviderStatus; fallback/"none" when backend selection itself
            fails
        """
        try:
            status = self.gateway.status(probe=probe)
        except InsightError as e:
            logger.warning(f"Provider status unavailable: {e}", extra={"stage": "status"})
            return ProviderStatus(provider=ProviderKind.FALLBACK, is_available=False, model="none")

        logger.debug(
            f"Provider status: {status.provider.value} "
            f"available={status.is_available} model={status.model}",
            extra={"provider": status.provider.value, "stage": "status"},
        )
        return status


__all__ = ["StatusReporter"]
