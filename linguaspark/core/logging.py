"""
Structured logging and monitoring for the LinguaSpark lesson service
"""
import sys
import time
from functools import wraps
from typing import Optional, Callable
from contextvars import ContextVar
import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from prometheus_client import Counter, Histogram, Gauge
import logging

from linguaspark.config import settings

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
generation_id_var: ContextVar[Optional[str]] = ContextVar("generation_id", default=None)

# Prometheus metrics
lesson_generations = Counter("lesson_generations_total", "Total lesson generation requests", ["status"])
generation_duration = Histogram("lesson_generation_duration_seconds", "Lesson generation duration")
section_results = Counter("lesson_sections_total", "Generated lesson sections", ["section", "strategy"])
section_duration = Histogram("lesson_section_duration_seconds", "Section generation duration", ["section"])
llm_requests = Counter("llm_requests_total", "Total LLM requests", ["model", "status"])
llm_duration = Histogram("llm_duration_seconds", "LLM request duration", ["model"])
llm_tokens = Counter("llm_tokens_total", "Tokens reported by the LLM provider", ["model"])
classified_errors = Counter("classified_errors_total", "Classified AI errors", ["type"])
active_generations = Gauge("active_lesson_generations", "Number of lesson generations in flight")


def add_request_context(logger, method_name, event_dict):
    """Add request context to log events"""
    request_id = request_id_var.get()
    generation_id = generation_id_var.get()

    if request_id:
        event_dict["request_id"] = request_id
    if generation_id:
        event_dict["generation_id"] = generation_id

    # Add service metadata
    event_dict["service"] = "linguaspark"
    event_dict["environment"] = settings.environment.value

    return event_dict


def setup_logging():
    """Configure structured logging for the application"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper())
    )

    # Configure structlog
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_request_context,
        CallsiteParameterAdder(
            parameters=[CallsiteParameter.FILENAME, CallsiteParameter.LINENO]
        ),
        structlog.processors.UnicodeDecoder(),
    ]

    # Use JSON in production
    if settings.log_format == "json" or settings.is_production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a configured logger instance"""
    return structlog.get_logger(name)


def log_execution_time(func: Callable) -> Callable:
    """Decorator to log and measure function execution time"""
    logger = get_logger(func.__module__)

    @wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.time()
        function_name = func.__name__

        logger.info("function_start", function=function_name)

        try:
            result = await func(*args, **kwargs)
            duration = time.time() - start_time

            logger.info("function_success",
                        function=function_name,
                        duration_seconds=duration)

            return result

        except Exception as e:
            duration = time.time() - start_time

            logger.error("function_error",
                         function=function_name,
                         duration_seconds=duration,
                         error=str(e),
                         error_type=type(e).__name__)
            raise

    @wraps(func)
    def sync_wrapper(*args, **kwargs):
        start_time = time.time()
        function_name = func.__name__

        try:
            result = func(*args, **kwargs)
            logger.debug("function_success",
                         function=function_name,
                         duration_seconds=time.time() - start_time)
            return result

        except Exception as e:
            logger.error("function_error",
                         function=function_name,
                         duration_seconds=time.time() - start_time,
                         error=str(e),
                         error_type=type(e).__name__)
            raise

    # Return appropriate wrapper
    import asyncio
    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


class MetricsLogger:
    """Helper class for logging with metrics"""

    def __init__(self, logger: structlog.BoundLogger):
        self.logger = logger

    def log_generation_start(self, generation_id: str, lesson_type: str, student_level: str, word_count: int):
        """Log lesson generation start"""
        generation_id_var.set(generation_id)
        active_generations.inc()
        self.logger.info("lesson_generation_started",
                         generation_id=generation_id,
                         lesson_type=lesson_type,
                         student_level=student_level,
                         word_count=word_count)

    def log_generation_complete(self, generation_id: str, duration: float, fallback_sections: int):
        """Log lesson generation completion"""
        active_generations.dec()
        lesson_generations.labels(status="success").inc()
        generation_duration.observe(duration)
        self.logger.info("lesson_generation_completed",
                         generation_id=generation_id,
                         duration_seconds=duration,
                         fallback_sections=fallback_sections)

    def log_generation_error(self, generation_id: str, error: str):
        """Log lesson generation error"""
        active_generations.dec()
        lesson_generations.labels(status="error").inc()
        self.logger.error("lesson_generation_failed",
                          generation_id=generation_id,
                          error=error)

    def log_section_result(self, section: str, strategy: str, duration: float,
                           attempts: int, tokens_used: int):
        """Log one finished lesson section"""
        section_results.labels(section=section, strategy=strategy).inc()
        section_duration.labels(section=section).observe(duration)
        log = self.logger.warning if strategy == "fallback" else self.logger.info
        log("section_generated",
            section=section,
            strategy=strategy,
            attempts=attempts,
            tokens_used=tokens_used,
            duration_seconds=duration)

    def log_llm_request(self, model: str, prompt_length: int):
        """Log LLM request"""
        self.logger.debug("llm_request",
                          model=model,
                          prompt_length=prompt_length)

    def log_llm_complete(self, model: str, duration: float,
                         tokens_used: int = 0, success: bool = True):
        """Log LLM completion"""
        status = "success" if success else "error"
        llm_requests.labels(model=model, status=status).inc()
        llm_duration.labels(model=model).observe(duration)

        if success:
            llm_tokens.labels(model=model).inc(tokens_used)
            self.logger.debug("llm_complete",
                              model=model,
                              duration_seconds=duration,
                              tokens_used=tokens_used)
        else:
            self.logger.error("llm_failed",
                              model=model,
                              duration_seconds=duration)

    def log_classified_error(self, error_type: str, error_id: str, error: str):
        """Log an AI error after classification"""
        classified_errors.labels(type=error_type).inc()
        self.logger.error("ai_error_classified",
                          error_type=error_type,
                          error_id=error_id,
                          error=error)


# Initialize logging on module import
setup_logging()

# Create default logger
logger = get_logger(__name__)
metrics_logger = MetricsLogger(logger)
