"""
Streamlit error display components.

Errors are shown by their short ``user_message``; technical details are only
rendered on request and never include the original exception text.
"""

from typing import Any

import streamlit as st

from ...error_handling import ErrorInfo, ErrorSeverity, handle_error
from ...logging_config import get_logger

# Type alias for Streamlit container
StreamlitContainer = Any

logger = get_logger(__name__)


class ErrorDisplayManager:
    """Displays errors in the Streamlit interface."""

    def display_error(
        self,
        error_info: ErrorInfo,
        container: StreamlitContainer | None = None,
        show_details: bool = False,
    ) -> None:
        """
        Display error information.

        Args:
            error_info: Structured error information
            container: Streamlit container to display in (optional)
            show_details: Whether to show the error code and details
        """
        target = container or st
        alert_type = self._get_alert_type(error_info.severity)

        if alert_type == "error":
            target.error(error_info.user_message)
        elif alert_type == "warning":
            target.warning(error_info.user_message)
        else:
            target.info(error_info.user_message)

        if show_details and error_info.details:
            with target.expander("Details", expanded=False):
                st.write("**Code:**", error_info.code)
                for key, value in error_info.details.items():
                    if key != "original_exception":
                        st.write(f"- {key}: {value}")

        logger.debug(
            "error_displayed",
            error_code=error_info.code,
            category=error_info.category.value,
            severity=error_info.severity.value,
        )

    def display_exception(
        self,
        exception: Exception,
        context: dict[str, Any] | None = None,
        container: StreamlitContainer | None = None,
        show_details: bool = False,
    ) -> None:
        """Classify ``exception`` and display it."""
        self.display_error(handle_error(exception, context), container=container, show_details=show_details)

    def _get_alert_type(self, severity: ErrorSeverity) -> str:
        if severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            return "error"
        if severity == ErrorSeverity.MEDIUM:
            return "warning"
        return "info"


error_display_manager = ErrorDisplayManager()


def get_error_display_manager() -> ErrorDisplayManager:
    """Get the global error display manager."""
    return error_display_manager


class StreamlitErrorContext:
    """Context manager that displays, instead of raising, errors from a block."""

    def __init__(self, context: dict[str, Any] | None = None, container: StreamlitContainer | None = None):
        self.context = context or {}
        self.container = container

    def __enter__(self) -> "StreamlitErrorContext":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        if exc_type is None:
            return False

        from streamlit.runtime.scriptrunner_utils.exceptions import RerunException, StopException

        # st.rerun() and st.stop() are control flow, not errors
        if isinstance(exc_val, (RerunException, StopException)):
            return False
        if not isinstance(exc_val, Exception):
            return False

        error_display_manager.display_exception(exc_val, context=self.context, container=self.container)
        return True


def error_context(operation: str, container: StreamlitContainer | None = None) -> StreamlitErrorContext:
    """Create an error context for a named UI operation."""
    return StreamlitErrorContext({"operation": operation}, container)
