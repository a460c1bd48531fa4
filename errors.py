# errors.py
from typing import List, Optional


class LimitsError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationMissingError(LimitsError):
    """The metafield definition could not be found or created."""


class PersistencePayloadError(LimitsError):
    """The stored payload is not a JSON object."""


class PersistenceWriteError(LimitsError):
    """The backing store failed or rejected a write.

    `messages` holds every message the store returned, one per banner.
    """

    def __init__(self, message: str, messages: Optional[List[str]] = None):
        super().__init__(message)
        self.messages = list(messages) if messages else [message]
