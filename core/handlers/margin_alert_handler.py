"""
Handler for MarginDepleted events.

Sends a single alert e-mail to the address configured in the project's KPI
settings. The edge trigger upstream guarantees one event per crossing.
"""

import logging
from typing import Callable

from core.events import MarginDepleted

logger = logging.getLogger(__name__)


def _format_figure(value) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def handle_margin_depleted(email_client) -> Callable:
    """
    Factory that returns a MarginDepleted handler.

    Args:
        email_client: EmailGatewayClient instance

    Returns:
        Handler callable that sends the alert e-mail
    """

    def handler(event: MarginDepleted):
        if not event.notify_email:
            logger.info(f"No notify_email for project {event.project_id}, margin alert skipped")
            return

        finance = event.finance
        body = (
            f"The margin of project {event.project_id} has dropped to "
            f"{_format_figure(event.margin_percent)} %.\n\n"
            f"Budget: {_format_figure(finance.budget if finance else None)}\n"
            f"Total cost: {_format_figure(finance.total_cost if finance else None)}\n"
            f"Profit: {_format_figure(finance.profit if finance else None)}\n"
        )

        email_client.send_email(
            to=event.notify_email,
            subject="Project margin used up",
            body=body,
            idempotency_key=f"margin-depleted:{event.event_id}",
        )
        logger.info(f"Margin alert sent for project {event.project_id}")

    return handler
