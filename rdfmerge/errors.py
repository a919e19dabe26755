# rdfmerge/errors.py
from __future__ import annotations


class RDFMergeError(Exception):
    """Base class for every error raised by rdfmerge."""


class UnreadableFormat(RDFMergeError):
    """No parser or serializer is available for a locator."""

    def __init__(self, locator: str, fmt: str | None = None):
        self.locator = locator
        self.fmt = fmt
        if fmt:
            super().__init__(f"No RDF {fmt!r} support for {locator}")
        else:
            super().__init__(f"Can't determine RDF format of {locator}")


class ParseError(RDFMergeError):
    """Malformed input was met part way through a source."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class ConfigurationError(RDFMergeError):
    pass
