"""
Checkout sequence for a Paystack authorization.

The embedded popup is tried first, then the hosted page in a new window.
If both are blocked the user must explicitly agree to leave the page
before the same-window redirect happens.
"""

from typing import Protocol

import structlog

logger = structlog.get_logger()

CHECKOUT_POPUP = "popup"
CHECKOUT_WINDOW = "window"
CHECKOUT_REDIRECT = "redirect"

REDIRECT_PROMPT = (
    "Your browser blocked the payment window. "
    "Continue to Paystack in this tab to complete your payment?"
)


class CheckoutCancelled(Exception):
    """The user declined to be redirected to the payment page."""


class CheckoutDriver(Protocol):
    """What the checkout sequence needs from the client surface."""

    def open_popup(self, access_code: str) -> bool:
        """Open the embedded popup. False if it was blocked."""
        ...

    def open_window(self, authorization_url: str) -> bool:
        """Open the hosted page in a new window. False if it was blocked."""
        ...

    def confirm(self, message: str) -> bool:
        ...

    def redirect(self, authorization_url: str) -> None:
        ...


def open_checkout(driver: CheckoutDriver, authorization: dict) -> str:
    """
    Present the payment page for an initialized transaction.

    Args:
        driver: Client surface
        authorization: Result of payment initialization

    Returns:
        The mechanism that was used: popup, window or redirect

    Raises:
        CheckoutCancelled: Both windows were blocked and the user declined
    """
    reference = authorization.get("reference")
    access_code = authorization.get("access_code")
    url = authorization["authorization_url"]

    if access_code and driver.open_popup(access_code):
        logger.info("checkout_opened", reference=reference, mechanism=CHECKOUT_POPUP)
        return CHECKOUT_POPUP

    if driver.open_window(url):
        logger.info("checkout_opened", reference=reference, mechanism=CHECKOUT_WINDOW)
        return CHECKOUT_WINDOW

    if not driver.confirm(REDIRECT_PROMPT):
        logger.info("checkout_cancelled", reference=reference)
        raise CheckoutCancelled(f"Checkout for {reference} was cancelled")

    driver.redirect(url)
    logger.info("checkout_opened", reference=reference, mechanism=CHECKOUT_REDIRECT)
    return CHECKOUT_REDIRECT
