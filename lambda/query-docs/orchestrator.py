"""
Query orchestrator.

Turns a question (plus optional session id and model hint) into a
QueryResult: resolves the generation model, calls the knowledge base backend
once, and reduces the citations to a single source reference.
"""

import json
import logging
from typing import List, Optional

from config import OrchestratorConfig
from models import (
    BackendFailure,
    BackendSuccess,
    Citation,
    OtherLocation,
    QueryResult,
    S3Location,
    WebLocation,
)

logger = logging.getLogger()

SERVER_ERROR_MESSAGE = "Server side error: please check function logs"
MISSING_QUESTION_MESSAGE = "Invalid request: question is required"


def server_error_result() -> QueryResult:
    """Generic failure result; carries no backend detail."""
    return QueryResult(status_code=500, answer_text=SERVER_ERROR_MESSAGE)


def client_error_result(message: str, status_code: int = 400) -> QueryResult:
    """Result for a request rejected before the backend is called."""
    return QueryResult(status_code=status_code, answer_text=message)


def normalize_citation(citations: List[Citation]) -> Optional[str]:
    """
    Reduce Bedrock citations to a single source reference.

    Only the first reference of the first citation is consulted; the rest
    are never parsed.

    Args:
        citations: Citations as returned by the backend

    Returns:
        Optional[str]: S3 URI, web URL, or None when there is no usable source

    Raises:
        ValueError: If the first reference is an S3/WEB location missing its uri/url
    """
    if not citations or not citations[0].retrieved_references:
        return None

    location = citations[0].retrieved_references[0].parsed_location()

    if location is None:
        return None
    if isinstance(location, S3Location):
        return location.uri
    if isinstance(location, WebLocation):
        return location.url
    if isinstance(location, OtherLocation):
        logger.info(f"[query-docs] Citation source type not surfaced: {location.type}")
        return None

    raise TypeError(f"Unhandled citation location: {type(location).__name__}")


def to_model_arn(model_id: str, region: str) -> str:
    """Foundation model ARN for ``model_id``; ARNs are returned unchanged."""
    if model_id.startswith("arn:"):
        return model_id
    return f"arn:aws:bedrock:{region}::foundation-model/{model_id}"


class QueryOrchestrator:
    """
    Answers questions against a single knowledge base.

    Holds no per-request state, so one instance serves every invocation
    in the container.
    """

    def __init__(self, config: OrchestratorConfig, backend):
        """
        Args:
            config: Knowledge base, model and prompt settings
            backend: Object exposing ``retrieve_and_generate(input_text, model_arn, session_id)``
        """
        self.config = config
        self.backend = backend

    def resolve_model_arn(self, model_hint: Optional[str] = None) -> str:
        """Use the caller's model hint only if it is allow-listed."""
        model_id = self.config.model_id

        if model_hint and self.config.is_allowed_model(model_hint):
            model_id = model_hint
        elif model_hint:
            logger.warning(f"[query-docs] Model hint not allowed, using default: {model_hint}")

        model_arn = to_model_arn(model_id, self.config.region)
        logger.info(f"[query-docs] model requested={model_hint} resolved={model_arn}")
        return model_arn

    def handle(
        self,
        question: Optional[str],
        session_id: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> QueryResult:
        """
        Answer one question.

        Args:
            question: Natural-language question
            session_id: Session id returned by a previous answer
            model_id: Optional generation model hint

        Returns:
            QueryResult: 200 with answer, citation and session id; 400 for a
            missing question; 500 for any backend or internal failure
        """
        if not question or not question.strip():
            logger.warning("[query-docs] Rejecting request without a question")
            return client_error_result(MISSING_QUESTION_MESSAGE)

        try:
            model_arn = self.resolve_model_arn(model_id)
            input_text = self.config.prompt_template.format(question=question)

            outcome = self.backend.retrieve_and_generate(
                input_text=input_text,
                model_arn=model_arn,
                session_id=session_id,
            )

            if isinstance(outcome, BackendFailure):
                logger.error(
                    f"[query-docs] Backend failure ({outcome.error_code}): {outcome.reason}"
                )
                return server_error_result()

            if not isinstance(outcome, BackendSuccess):
                raise TypeError(f"Unexpected backend result: {type(outcome).__name__}")

            result = outcome.result
            self._log_citations(result.citations)

            return QueryResult(
                status_code=200,
                answer_text=result.output_text,
                citation=normalize_citation(result.citations),
                session_id=result.session_id,
            )

        except Exception as e:
            logger.error(f"[query-docs] Unexpected error handling query: {e}", exc_info=True)
            return server_error_result()

    @staticmethod
    def _log_citations(citations: List[Citation]) -> None:
        logger.info(
            "[query-docs] query response citation "
            f"{json.dumps([c.model_dump(by_alias=True) for c in citations], default=str)}"
        )
        for citation in citations:
            logger.info(
                f"[query-docs] generatedResponsePart: {citation.generated_response_part} "
                f"retrievedReferences: {[r.model_dump() for r in citation.retrieved_references]}"
            )
