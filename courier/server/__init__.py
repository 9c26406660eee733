"""HTTP API for scheduling and cancelling emails."""

from courier.server.app import ApiServer, create_web_app

__all__ = ["ApiServer", "create_web_app"]
