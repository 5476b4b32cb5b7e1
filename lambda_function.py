"""AWS Lambda handler for the Luma to Intercom attendee sync."""
import base64
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from crm.credentials import MissingCredentialsError, load_credentials, sandbox_available
from crm.intercom_client import IntercomClient
from importer.luma_export import LumaExportReader
from processor.errors import BatchValidationError
from processor.models import ColumnMapping, EventSettings
from processor.pipeline import prepare_batch
from publisher.batch_orchestrator import BatchOrchestrator
from publisher.event_publisher import EventPublisher
from publisher.progress_stream import ProgressStream


# Keys from LogRecord.__dict__ that are not user-supplied extras
_RESERVED_LOG_KEYS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any extra fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_KEYS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def json_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """Build an API Gateway response with a JSON body."""
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }


def error_response(status_code: int, message: str, errors: Optional[list] = None) -> Dict[str, Any]:
    """Build a terminal error response in the stream message shape."""
    body = {'type': 'error', 'error': message}
    if errors:
        body['errors'] = errors
    return json_response(status_code, body)


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decode the JSON request body.

    Raises:
        BatchValidationError: If the body is not a JSON object
    """
    raw = event.get('body') or ''
    if event.get('isBase64Encoded'):
        raw = base64.b64decode(raw).decode('utf-8')
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        raise BatchValidationError("Request body must be JSON")
    if not isinstance(body, dict):
        raise BatchValidationError("Request body must be a JSON object")
    return body


def handle_config(environ=None) -> Dict[str, Any]:
    """Report whether the sandbox workspace can be used."""
    return json_response(200, {'testModeAvailable': sandbox_available(environ)})


def handle_preview(body: Dict[str, Any]) -> Dict[str, Any]:
    """Preview an export: columns, sample row, suggested mapping."""
    if not body.get('csv'):
        raise BatchValidationError("No file uploaded")

    reader = LumaExportReader()
    preview = reader.preview(body['csv'], body.get('filename', ''))
    return json_response(200, preview.to_dict())


def handle_upload(body: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Derive events from an export and publish them, streaming progress.

    Args:
        body: Decoded request body
        config: Settings read from the environment

    Returns:
        Response whose body is the event-stream of progress messages
    """
    logger = logging.getLogger(__name__)

    if not body.get('csv'):
        raise BatchValidationError("No file uploaded")

    reader = LumaExportReader()
    reader.validate_filename(body.get('filename', ''))

    mapping_data = body.get('mapping')
    if not mapping_data:
        raise BatchValidationError("Column mapping is required")
    if not isinstance(mapping_data, dict):
        raise BatchValidationError("Invalid column mapping format")
    mapping = ColumnMapping.from_dict(mapping_data)

    settings = None
    settings_data = body.get('eventSettings')
    if isinstance(settings_data, dict):
        settings = EventSettings.from_dict(settings_data)
    elif settings_data:
        logger.warning("Failed to parse event settings, continuing without them")

    sandbox = body.get('testMode') in (True, 'true')

    columns, rows = reader.read(body['csv'])
    batch = prepare_batch(rows, columns, mapping, settings, sandbox=sandbox)

    # Credential set is read once per batch
    credentials = load_credentials(sandbox=sandbox)
    client = IntercomClient(
        credentials,
        base_url=config['api_base'],
        api_version=config['api_version'],
        timeout=config['timeout_seconds'],
        max_retries=config['max_retries']
    )
    publisher = EventPublisher(client, settle_delay=config['settle_delay'])
    orchestrator = BatchOrchestrator(publisher, pacing_delay=config['pacing_delay'])

    logger.info(
        f"Publishing {len(batch.events)} events",
        extra={'workspace': credentials.label, 'attendees': len(batch.attendees)}
    )
    stream = ProgressStream(batch, orchestrator)

    return {
        'statusCode': 200,
        'headers': {
            'Content-Type': 'text/event-stream',
            'Cache-Control': 'no-cache',
            'Connection': 'keep-alive'
        },
        'body': ''.join(stream.lines())
    }


def load_config() -> Dict[str, Any]:
    """Read handler settings from environment variables."""
    return {
        'log_level': os.environ.get('LOG_LEVEL', 'INFO'),
        'api_base': os.environ.get('INTERCOM_API_BASE', IntercomClient.BASE_URL),
        'api_version': os.environ.get('INTERCOM_API_VERSION', IntercomClient.API_VERSION),
        'timeout_seconds': int(os.environ.get('TIMEOUT_SECONDS', '30')),
        'max_retries': int(os.environ.get('MAX_RETRIES', '3')),
        'settle_delay': float(
            os.environ.get('SETTLE_DELAY_SECONDS', str(EventPublisher.DEFAULT_SETTLE_DELAY))
        ),
        'pacing_delay': float(
            os.environ.get('PACING_DELAY_SECONDS', str(BatchOrchestrator.DEFAULT_PACING_DELAY))
        )
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler for the attendee sync HTTP routes.

    Routes:
        GET  /config   sandbox availability
        POST /preview  export preview and suggested mapping
        POST /upload   publish events, body is an event-stream

    Args:
        event: API Gateway (HTTP API) or function URL event
        context: Lambda context object

    Returns:
        API Gateway response dict
    """
    config = load_config()

    setup_logging(config['log_level'])
    logger = logging.getLogger(__name__)

    http = event.get('requestContext', {}).get('http', {})
    method = (http.get('method') or event.get('httpMethod') or 'GET').upper()
    path = (event.get('rawPath') or event.get('path') or '/').rstrip('/') or '/'

    start_time = time.time()
    logger.info(f"Lambda execution started", extra={'method': method, 'path': path})

    try:
        if method == 'GET' and path.endswith('/config'):
            return handle_config()

        if method == 'POST' and path.endswith('/preview'):
            return handle_preview(parse_body(event))

        if method == 'POST' and path.endswith('/upload'):
            response = handle_upload(parse_body(event), config)
            logger.info(
                f"Lambda execution completed successfully",
                extra={'duration_seconds': round(time.time() - start_time, 2)}
            )
            return response

        return error_response(404, f"No route for {method} {path}")

    except BatchValidationError as e:
        logger.warning(f"Rejected request: {e.message}", extra={'row_errors': len(e.errors)})
        return error_response(400, e.message, e.errors)

    except MissingCredentialsError as e:
        logger.error(str(e), extra={'variable': e.variable})
        return error_response(500, str(e))

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        body = {
            'type': 'error',
            'error': str(e) or "Unknown error occurred",
            'success': False
        }
        return json_response(500, body)
