"""Tests for the telemetry facades."""

from unittest.mock import MagicMock, patch

from socketry.telemetry import LoggingFacade, TracingFacade, get_telemetry


def test_get_telemetry():
    """Test that get_telemetry returns a tracer and a logger with the same name."""
    tracer, logger = get_telemetry("socketry.test")
    assert isinstance(tracer, TracingFacade)
    assert isinstance(logger, LoggingFacade)
    assert tracer.name == logger.name == "socketry.test"


def test_tracing_facade_init():
    """Test TracingFacade initialization."""
    mock_tracer = MagicMock()
    mock_get_tracer = MagicMock(return_value=mock_tracer)
    with patch("socketry.telemetry.facade.trace.get_tracer", mock_get_tracer):
        tracer = TracingFacade("test_tracer")

    assert tracer.name == "test_tracer"
    assert tracer.tracer == mock_tracer
    mock_get_tracer.assert_called_once_with("test_tracer")


def test_tracing_facade_spans():
    """Test that span creation is forwarded with attributes."""
    mock_tracer = MagicMock()
    with patch("socketry.telemetry.facade.trace.get_tracer", return_value=mock_tracer):
        tracer = TracingFacade("test_tracer")

    span = tracer.start_span("test_span", {"key": "value"})
    assert span == mock_tracer.start_span.return_value
    mock_tracer.start_span.assert_called_once_with("test_span", attributes={"key": "value"})

    current = tracer.start_as_current_span("test_span", {"key": "value"})
    assert current == mock_tracer.start_as_current_span.return_value
    mock_tracer.start_as_current_span.assert_called_once_with(
        "test_span", attributes={"key": "value"}
    )


def test_tracing_facade_default_tracer_is_usable():
    """Test that spans work without a configured tracer provider."""
    tracer = TracingFacade("test_tracer")
    with tracer.start_as_current_span("test_span", {"uri": "tcp://127.0.0.1:0"}) as span:
        span.set_attribute("key", "value")


def _mock_span(valid: bool):
    mock_span = MagicMock()
    mock_context = MagicMock()
    mock_context.is_valid = valid
    mock_context.trace_id = 0x1234567890ABCDEF1234567890ABCDEF
    mock_context.span_id = 0x1234567890ABCDEF
    mock_span.get_span_context.return_value = mock_context
    return mock_span


def test_logging_facade_adds_trace_context():
    """Test that events carry the ids of a valid current span."""
    mock_logger = MagicMock()
    mock_span = _mock_span(valid=True)

    with (
        patch("socketry.telemetry.facade.structlog.get_logger", return_value=mock_logger),
        patch("socketry.telemetry.facade.trace.get_current_span", return_value=mock_span),
    ):
        logger = LoggingFacade("test_logger")

        for method in ("debug", "info", "warning"):
            getattr(logger, method)("test_event", key="value")
            getattr(mock_logger, method).assert_called_once_with(
                "test_event",
                key="value",
                trace_id="1234567890abcdef1234567890abcdef",
                span_id="1234567890abcdef",
            )

        mock_span.set_status.assert_not_called()


def test_logging_facade_marks_span_on_error():
    """Test that error and critical events mark the current span."""
    mock_logger = MagicMock()
    mock_span = _mock_span(valid=True)

    with (
        patch("socketry.telemetry.facade.structlog.get_logger", return_value=mock_logger),
        patch("socketry.telemetry.facade.trace.get_current_span", return_value=mock_span),
    ):
        logger = LoggingFacade("test_logger")

        logger.error("test_event", key="value")
        mock_span.set_status.assert_called_once()
        mock_logger.error.assert_called_once()

        mock_span.set_status.reset_mock()
        logger.critical("test_event", key="value")
        mock_span.set_status.assert_called_once()
        mock_logger.critical.assert_called_once()


def test_logging_facade_without_span():
    """Test that events outside a span carry no trace ids."""
    mock_logger = MagicMock()
    mock_span = _mock_span(valid=False)

    with (
        patch("socketry.telemetry.facade.structlog.get_logger", return_value=mock_logger),
        patch("socketry.telemetry.facade.trace.get_current_span", return_value=mock_span),
    ):
        logger = LoggingFacade("test_logger")
        logger.info("test_event", key="value")
        logger.error("test_event", key="value")

    mock_logger.info.assert_called_once_with("test_event", key="value")
    mock_logger.error.assert_called_once_with("test_event", key="value")
    mock_span.set_status.assert_not_called()
