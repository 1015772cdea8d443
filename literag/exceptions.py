"""
Exceptions raised by the literag pipeline.
"""


class RAGError(Exception):
    """Base exception for all literag errors."""
    pass


class ConfigurationError(RAGError, ValueError):
    """
    A component was constructed with missing or invalid configuration.

    Raised when:
    - An API key or token is neither passed nor set in the environment
    - An embedder backend prefix is not recognised
    """
    pass


class ValidationError(RAGError, ValueError):
    """
    Input to a store or the pipeline does not have the expected shape.

    Raised when:
    - A chunk is added to a store without an embedding vector
    - An embeddings provider returns a different number of vectors than
      texts it was given
    """
    pass


class IndexNotReadyError(RAGError, RuntimeError):
    """A search index was queried before build() was called."""
    pass


class ProviderError(RAGError):
    """
    An external embeddings or generation provider returned an error.
    """

    def __init__(self, message: str, provider: str = None, status_code: int = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
