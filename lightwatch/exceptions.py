class FetchError(Exception):
    """Base class for anything that prevents the feed body from being read."""


class TransportError(FetchError):
    """Connection, DNS or timeout failure before a response was received."""


class HttpStatusError(FetchError):
    """The feed answered with a status other than 200."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP Error: {status_code}")
        self.status_code = status_code


class ParseError(Exception):
    """The feed payload is not an object carrying a `data` array."""
