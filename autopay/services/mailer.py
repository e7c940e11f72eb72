"""Receipt Mailer — default ReceiptMailer that records receipts in the log.

Delivery (SMTP, provider APIs) is handled outside this service; deployments inject
their own ReceiptMailer implementation.
"""

import logging
from decimal import Decimal

logger = logging.getLogger(__name__)


class LoggingReceiptMailer:

    async def send_receipt(
        self,
        email: str,
        display_name: str,
        amount: Decimal,
        counterparty: str,
        tx_hash: str,
        direction: str,
    ) -> None:
        verb = "received from" if direction == "inbound" else "sent to"
        logger.info(
            f"Receipt for {display_name} <{email}>: {amount} {verb} {counterparty}",
            extra={"tx_hash": tx_hash},
        )
