"""
Tests for the checkout popup/window/redirect sequence.
"""

import pytest

from realaist.services.checkout import (
    CHECKOUT_POPUP,
    CHECKOUT_REDIRECT,
    CHECKOUT_WINDOW,
    REDIRECT_PROMPT,
    CheckoutCancelled,
    open_checkout,
)

AUTHORIZATION = {
    "reference": "campaign_abc_1760870400000",
    "access_code": "ac_abc",
    "authorization_url": "https://checkout.paystack.com/ac_abc",
}


class FakeDriver:
    def __init__(self, popup=True, window=True, confirm=True):
        self.popup = popup
        self.window = window
        self.answer = confirm
        self.calls = []

    def open_popup(self, access_code):
        self.calls.append(("popup", access_code))
        return self.popup

    def open_window(self, authorization_url):
        self.calls.append(("window", authorization_url))
        return self.window

    def confirm(self, message):
        self.calls.append(("confirm", message))
        return self.answer

    def redirect(self, authorization_url):
        self.calls.append(("redirect", authorization_url))


class TestOpenCheckout:

    def test_popup_first(self):
        driver = FakeDriver()

        assert open_checkout(driver, AUTHORIZATION) == CHECKOUT_POPUP
        assert driver.calls == [("popup", "ac_abc")]

    def test_falls_back_to_window(self):
        driver = FakeDriver(popup=False)

        assert open_checkout(driver, AUTHORIZATION) == CHECKOUT_WINDOW
        assert driver.calls[-1] == ("window", AUTHORIZATION["authorization_url"])

    def test_no_access_code_skips_popup(self):
        driver = FakeDriver()
        authorization = {**AUTHORIZATION, "access_code": None}

        assert open_checkout(driver, authorization) == CHECKOUT_WINDOW
        assert [name for name, _ in driver.calls] == ["window"]

    def test_redirect_needs_confirmation(self):
        """Both windows blocked: redirect only after the user agrees."""
        driver = FakeDriver(popup=False, window=False)

        assert open_checkout(driver, AUTHORIZATION) == CHECKOUT_REDIRECT
        assert driver.calls[-2:] == [
            ("confirm", REDIRECT_PROMPT),
            ("redirect", AUTHORIZATION["authorization_url"]),
        ]

    def test_declined_redirect_cancels(self):
        driver = FakeDriver(popup=False, window=False, confirm=False)

        with pytest.raises(CheckoutCancelled):
            open_checkout(driver, AUTHORIZATION)

        assert "redirect" not in [name for name, _ in driver.calls]
