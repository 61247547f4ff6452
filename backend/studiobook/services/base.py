# backend/studiobook/services/base.py
"""
Base Service Pattern for the studio booking engine

Provides common functionality for service classes including:
- Logging
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, TypeVar, cast

from ..core.config import settings
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class BaseService:
    """
    Base class for service layer components.

    Services here never own persistence; they work over snapshots handed in
    by the caller and only add logging and timing around them.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("add_shift")
            def add_shift(self, shift):
                # Method implementation

        Args:
            operation_name: Name of the operation for metrics

        Returns:
            Decorator function
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                with self.measure_operation_context(operation_name):
                    return func(self, *args, **kwargs)

            return cast(F, wrapper)

        return decorator

    @contextmanager
    def measure_operation_context(self, operation_name: str) -> Iterator[None]:
        """
        Context manager to measure operation performance.

        Usage:
            with self.measure_operation_context("complex_operation"):
                # Do work here
                pass
        """
        start_time = time.perf_counter()
        success = False
        error_type = None

        try:
            yield
            success = True
        except Exception as e:
            error_type = type(e).__name__
            raise
        finally:
            elapsed = time.perf_counter() - start_time

            if elapsed > settings.slow_operation_threshold_seconds:
                self.logger.warning(
                    f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                )

            prometheus_metrics.record_service_operation(
                service=self.__class__.__name__,
                operation=operation_name,
                duration=elapsed,
                status="success" if success else "error",
                error_type=error_type,
            )
