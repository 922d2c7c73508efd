# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Result notification contract.

Delivery (mail transport, recipient lookup) is provided by the host
application. The dispatcher only needs ``send_results``.
"""

import logging
from typing import Protocol

from scriptrunner.schemas import ExecutionRecord

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send_results(self, record: ExecutionRecord) -> bool:
        """Send the outcome of ``record``. Returns True only if sent."""
        ...


class NullNotifier:
    """Notifier used when no delivery channel is configured."""

    def send_results(self, record: ExecutionRecord) -> bool:
        logger.debug("No notifier configured; skipping results for %s", record.execution_id)
        return False
