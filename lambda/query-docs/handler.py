"""
Lambda handler for answering questions against the document knowledge base.

This handler:
1. Normalizes header names and parses the JSON request body
2. Validates the request payload using Pydantic schemas
3. Delegates to the QueryOrchestrator (Bedrock RetrieveAndGenerate)
4. Returns {response, citation, sessionId} with CORS headers on every status
"""

import base64
import binascii
import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import ValidationError

from bedrock_client import BedrockKnowledgeBaseBackend
from config import load_config
from models import QueryRequest, QueryResult
from orchestrator import QueryOrchestrator, client_error_result, server_error_result

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Methods": "OPTIONS,POST,GET",
}


class RequestError(Exception):
    """Request rejected before it reaches the orchestrator."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@lru_cache(maxsize=1)
def get_orchestrator() -> QueryOrchestrator:
    """Build the orchestrator once per container."""
    config = load_config()
    return QueryOrchestrator(config, BedrockKnowledgeBaseBackend(config))


def make_results(result: QueryResult) -> Dict[str, Any]:
    """Frame a QueryResult as an API Gateway proxy response."""
    return {
        "statusCode": result.status_code,
        "headers": {"Content-Type": "application/json", **CORS_HEADERS},
        "body": json.dumps(result.to_body()),
    }


def normalize_headers(headers: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Lowercase header names so lookups are case-insensitive."""
    return {str(name).lower(): value for name, value in (headers or {}).items()}


def get_http_method(event: Dict[str, Any]) -> Optional[str]:
    """HTTP method for REST (v1) and HTTP API (v2) events, None for direct invokes."""
    method = event.get("httpMethod")
    if not method:
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method")
    return method.upper() if method else None


def parse_body(event: Dict[str, Any], headers: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse the JSON request body.

    Args:
        event: Lambda event object
        headers: Normalized request headers

    Returns:
        dict: Decoded JSON object

    Raises:
        RequestError: If the content type or body is not JSON
    """
    body = event.get("body")

    # Direct invocation with an already-decoded body
    if isinstance(body, dict):
        return body

    content_type = headers.get("content-type")
    if content_type and "json" not in str(content_type).lower():
        raise RequestError(f"Unsupported content type: {content_type}", status_code=415)

    if body is None or body == "":
        raise RequestError("Invalid request: body is required")

    if event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise RequestError("Invalid request: body is not valid base64")

    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        raise RequestError("Invalid request: body must be valid JSON")

    if not isinstance(parsed, dict):
        raise RequestError("Invalid request: body must be a JSON object")

    return parsed


def process_event(event: Dict[str, Any]) -> QueryResult:
    """
    Process the Lambda event and answer the question.

    Args:
        event: Lambda event object

    Returns:
        QueryResult: Result to frame as the HTTP response
    """
    method = get_http_method(event)
    if method and method != "POST":
        logger.warning(f"[query-docs] Method not allowed: {method}")
        return client_error_result(f"Method not allowed: {method}", status_code=405)

    headers = normalize_headers(event.get("headers"))

    try:
        body = parse_body(event, headers)
        request = QueryRequest(**body)
    except RequestError as e:
        logger.warning(f"[query-docs] Rejected request ({e.status_code}): {e.message}")
        return client_error_result(e.message, status_code=e.status_code)
    except ValidationError as e:
        logger.warning(f"[query-docs] Validation error: {e}")
        return client_error_result("Invalid request: question, requestSessionId and modelId must be strings")

    logger.info(
        f"[query-docs] Validated request: question_chars={len(request.question or '')}, "
        f"has_session={request.requestSessionId is not None}, modelId={request.modelId}"
    )

    return get_orchestrator().handle(
        request.question,
        session_id=request.requestSessionId,
        model_id=request.modelId,
    )


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler entry point.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway response object; never raises
    """
    try:
        request_id = getattr(context, "aws_request_id", None)
        logger.info(f"[query-docs] Processing request: request_id={request_id}")
        result = process_event(event)

    except Exception as e:
        logger.error(f"[query-docs] Unexpected error: {str(e)}", exc_info=True)
        result = server_error_result()

    return make_results(result)
