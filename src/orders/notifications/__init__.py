"""Email channel registry.

``ORDERS_EMAIL_CHANNEL=log`` writes messages to the log; the default is the
in-memory fake so development and tests never send real mail. Sending
through a real provider is the notification collaborator's concern.
"""

import os

from orders.notifications.email_port import EmailPort

_email_channel: EmailPort | None = None


def get_email_channel() -> EmailPort:
    global _email_channel
    if _email_channel is None:
        if os.getenv("ORDERS_EMAIL_CHANNEL", "fake").lower() == "log":
            from orders.notifications.log_email import LogEmailAdapter

            _email_channel = LogEmailAdapter()
        else:
            from orders.notifications.fake_email import FakeEmailAdapter

            _email_channel = FakeEmailAdapter()
    return _email_channel


def reset_email_channel() -> None:
    global _email_channel
    _email_channel = None
