"""
minirag - Error Taxonomy
=========================
Exceptions raised by the retrieval pipeline and its providers.

``ConfigurationError``
    A provider has no credential configured.  Fatal for the call,
    never retried.
``TransportError``
    The provider call failed: network error, non-2xx response, or
    any other client-side failure.
``MalformedResponseError``
    The provider answered with an unexpected payload shape.  A
    ``TransportError`` subclass, so callers handle both alike.
``MalformedDataError``
    The persisted vector file is corrupt.  Raised while loading and
    absorbed by the store, which starts empty instead.

Blank questions and empty stores are not errors: the orchestrator
answers them with fixed guidance strings.
"""


class RagError(Exception):
    """Base class for every minirag failure."""


class ConfigurationError(RagError):
    """A required setting (typically an API key) is missing."""


class TransportError(RagError):
    """A provider call failed."""


class MalformedResponseError(TransportError):
    """A provider returned a payload of an unexpected shape."""


class MalformedDataError(RagError):
    """The durable vector file could not be parsed."""
