"""Notifiers — delivery backends invoked when a scheduled email fires."""

from courier.notifications.channels import Notifier
from courier.notifications.email import SmtpNotifier

__all__ = ["Notifier", "SmtpNotifier"]
