"""Route modules exposed by the API package."""

from . import dashboard, notifications, ping, tickets, users

__all__ = ["dashboard", "notifications", "ping", "tickets", "users"]
