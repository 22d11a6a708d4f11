"""
Store Errors
"""


class StoreError(Exception):
    """Raised by a store when a read or write could not be completed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)
