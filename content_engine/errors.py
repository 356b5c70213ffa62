"""Exception hierarchy for the content engine"""

from typing import Optional


class ContentEngineError(Exception):
    """Base class for all content engine errors"""


class ConfigurationError(ContentEngineError):
    """Required configuration is missing or malformed"""


class InputValidationError(ContentEngineError):
    """The user request failed validation"""


class ResponseParseError(ContentEngineError, ValueError):
    """No usable JSON could be recovered from an LLM response"""


class ExpressionError(ContentEngineError, ValueError):
    """A calculation rule could not be tokenized, parsed or evaluated"""


class GatewayError(ContentEngineError):
    """An LLM API call failed

    Attributes:
        status_code: HTTP status returned by the provider, if any
        retryable: Whether the gateway may retry the call
    """

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class GatewayTimeoutError(GatewayError):
    """The LLM API call exceeded its deadline"""

    def __init__(self, message: str = "Request timeout - the AI service took too long to respond"):
        super().__init__(message, status_code=None, retryable=True)


class CircuitOpenError(GatewayError):
    """The circuit breaker is open and rejects calls"""

    def __init__(self, message: str = "Circuit breaker is OPEN - AI service temporarily unavailable"):
        super().__init__(message, status_code=None, retryable=False)


class GenerationError(ContentEngineError):
    """Terminal failure of a generation stage"""


class ServiceGenerationError(GenerationError):
    """Generated services are missing or below the volume/coverage thresholds"""


class ContentValidationError(GenerationError):
    """Final content failed structural validation"""


class GenerationCancelled(ContentEngineError):
    """The caller went away before generation finished"""
