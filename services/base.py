import logging
from typing import Any, Dict, Optional

from utils.result import AppError, ErrorCode

logger = logging.getLogger(__name__)


def _format_context(context: Optional[Dict[str, Any]]) -> str:
    if not context:
        return ""
    return " " + " ".join(f"{k}={v}" for k, v in context.items())


class BaseService:
    """Shared logging and error helpers for the services."""

    name = "BaseService"

    def __init__(self, log: Optional[logging.Logger] = None):
        self.logger = log or logger

    def log_info(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.logger.info(f"[{self.name}] {message}{_format_context(context)}")

    def log_warn(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.logger.warning(f"[{self.name}] {message}{_format_context(context)}")

    def log_debug(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.logger.debug(f"[{self.name}] {message}{_format_context(context)}")

    def log_error(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        self.logger.error(f"[{self.name}] Error: {error}{_format_context(context)}", exc_info=error)

    def create_error(
        self,
        message: str,
        code: ErrorCode,
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ) -> AppError:
        return AppError(message, code, status_code, context)

    def handle_error(
        self,
        error: BaseException,
        message: str,
        code: ErrorCode,
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ) -> AppError:
        """Log ``error`` and return it as an AppError, wrapping anything unexpected."""
        self.log_error(error, context)
        if isinstance(error, AppError):
            return error
        return self.create_error(
            message,
            code,
            status_code,
            {"original_error": str(error), **(context or {})},
        )
