"""
Error handling - exception hierarchy, retry and normalisation

Every error raised on purpose inside the engine is a HeightsAIError with a
wire-level ErrorCode. Provider failures live in heights_ai.ports.interfaces.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Type

from heights_ai.domain.models import ErrorCode


logger = logging.getLogger(__name__)


# ==================== Exception hierarchy ====================

class HeightsAIError(Exception):
    """Base exception; subclasses set a default error_code"""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or type(self).error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(HeightsAIError):
    """Caller input rejected before any work is done"""

    error_code = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details={"field": field} if field else None)


class AllProvidersExhausted(HeightsAIError):
    error_code = ErrorCode.ALL_PROVIDERS_EXHAUSTED

    def __init__(self, providers: Sequence[str], failures: Optional[Dict[str, str]] = None):
        super().__init__(
            f"All providers failed: {', '.join(providers)}",
            details={"providers": list(providers), "failures": dict(failures or {})},
        )


class ContinuationFailed(HeightsAIError):
    """Asking a provider to finish a truncated answer failed"""

    error_code = ErrorCode.CONTINUATION_FAILED

    def __init__(self, provider: str, reason: Optional[str] = None):
        message = f"Continuation from '{provider}' failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"provider": provider, "reason": reason})


# ==================== Retry ====================

def async_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None
):
    """
    Retry a coroutine function with exponential backoff

    Only ``exceptions`` trigger a retry; anything else propagates at once.
    The last failure is re-raised after ``max_attempts`` tries.

    Args:
        max_attempts: total tries, at least 1
        delay: first pause in seconds
        backoff: pause multiplier
        exceptions: retryable exception types
        on_retry: called with (error, attempt) instead of the default warning
    """
    attempts = max(1, max_attempts)

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            pause = delay
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= attempts:
                        logger.error(f"{func.__qualname__} gave up after {attempts} attempts: {e}")
                        raise
                    if on_retry is not None:
                        on_retry(e, attempt)
                    else:
                        logger.warning(f"{func.__qualname__} attempt {attempt} failed ({e}), retry in {pause:.1f}s")
                    await asyncio.sleep(pause)
                    pause *= backoff
                    attempt += 1

        return wrapper
    return decorator


# ==================== Normalisation ====================

# builtin exception types with a more specific code than INTERNAL_ERROR
_BUILTIN_CODES: Dict[Type[BaseException], ErrorCode] = {
    ValueError: ErrorCode.INVALID_INPUT,
    TypeError: ErrorCode.INVALID_INPUT,
}


class ErrorHandler:
    """Turns arbitrary exceptions into HeightsAIError"""

    @staticmethod
    def handle_exception(
        e: Exception,
        context: Optional[str] = None
    ) -> HeightsAIError:
        """
        Normalise an exception

        Args:
            e: any exception
            context: operation name, prefixed to the message

        Returns:
            HeightsAIError: ``e`` itself when it already is one
        """
        if isinstance(e, HeightsAIError):
            return e

        message = str(e) or type(e).__name__
        if context:
            message = f"[{context}] {message}"

        code = next(
            (code for kind, code in _BUILTIN_CODES.items() if isinstance(e, kind)),
            ErrorCode.INTERNAL_ERROR,
        )
        return HeightsAIError(message, code, {"original_type": type(e).__name__})
