"""
Enum definitions for the application.
"""

from enum import Enum


class ChatType(str, Enum):
    """Chat type."""

    PRIVATE = "private"
    GROUP = "group"


class ConnectionState(str, Enum):
    """
    Lifecycle of a single connection.

    UNAUTHENTICATED -> AUTHENTICATED is one-way; the joined chat of an
    authenticated connection is tracked separately and changes on each join.
    """

    UNAUTHENTICATED = "UNAUTHENTICATED"
    AUTHENTICATED = "AUTHENTICATED"


class DeliveryTarget(str, Enum):
    """Who an outbound event is addressed to."""

    CONNECTION = "connection"  # a single connection
    USER = "user"  # every connection in the user's personal channel
    CHAT = "chat"  # every connection joined to the chat's live channel


# Sender id reserved for messages authored by the server itself
SYSTEM_SENDER_ID = "system"
