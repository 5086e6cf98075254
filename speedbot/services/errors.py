"""Errors raised by the Helix client when a bare status code is not enough."""


class HelixStatusError(Exception):
    """An upstream call answered with a status its caller cannot work around."""

    def __init__(self, endpoint: str, status: int):
        self.endpoint = endpoint
        self.status = status
        super().__init__(f"{endpoint} returned status {status}")
