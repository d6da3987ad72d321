"""
Bedrock client for knowledge base retrieval and answer generation.

Wraps the Bedrock Agent Runtime ``retrieve_and_generate`` call and turns
every outcome into a BackendSuccess or BackendFailure.
"""

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from config import OrchestratorConfig
from models import BackendFailure, BackendResult, BackendSuccess, GenerationResult

logger = logging.getLogger()


def create_bedrock_agent_client(config: OrchestratorConfig):
    """
    Create a Bedrock Agent Runtime client bounded by the configured timeouts.

    Retries are disabled: one attempt per request, failures surface at once.
    """
    client_config = Config(
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
        retries={
            "total_max_attempts": 1,
            "mode": "standard",
        },
    )
    return boto3.client("bedrock-agent-runtime", region_name=config.region, config=client_config)


def build_request(
    input_text: str,
    knowledge_base_id: str,
    model_arn: str,
    session_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the ``retrieve_and_generate`` request parameters.

    Args:
        input_text: Prompt sent to the knowledge base
        knowledge_base_id: Bedrock knowledge base id
        model_arn: Generation model ARN
        session_id: Prior session id, forwarded unchanged when present

    Returns:
        dict: Keyword arguments for ``retrieve_and_generate``
    """
    request = {
        "input": {"text": input_text},
        "retrieveAndGenerateConfiguration": {
            "type": "KNOWLEDGE_BASE",
            "knowledgeBaseConfiguration": {
                "knowledgeBaseId": knowledge_base_id,
                "modelArn": model_arn,
            },
        },
    }

    if session_id:
        request["sessionId"] = session_id

    return request


class BedrockKnowledgeBaseBackend:
    """Retrieval-and-generation backend backed by a Bedrock knowledge base."""

    def __init__(self, config: OrchestratorConfig, client=None):
        self.knowledge_base_id = config.knowledge_base_id
        self.client = client or create_bedrock_agent_client(config)

    def retrieve_and_generate(
        self,
        input_text: str,
        model_arn: str,
        session_id: Optional[str] = None,
    ) -> BackendResult:
        """
        Query the knowledge base and generate a grounded answer.

        Args:
            input_text: Prompt sent to the knowledge base
            model_arn: Generation model ARN
            session_id: Prior session id for conversational continuity

        Returns:
            BackendResult: BackendSuccess with the parsed payload, or
            BackendFailure describing what went wrong
        """
        request = build_request(input_text, self.knowledge_base_id, model_arn, session_id)

        logger.info(
            f"[bedrock] Invoking retrieve_and_generate: knowledge_base_id={self.knowledge_base_id}, "
            f"has_session={session_id is not None}"
        )

        try:
            response = self.client.retrieve_and_generate(**request)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            logger.error(f"[bedrock] Bedrock API error ({error_code}): {e}", exc_info=True)
            return BackendFailure(reason=str(e), error_code=error_code or None)
        except BotoCoreError as e:
            # Network failures and timeouts
            logger.error(f"[bedrock] Bedrock transport error: {e}", exc_info=True)
            return BackendFailure(reason=str(e), error_code=type(e).__name__)

        try:
            result = GenerationResult.from_bedrock(response)
        except (ValidationError, AttributeError) as e:
            logger.error(f"[bedrock] Malformed retrieve_and_generate payload: {e}", exc_info=True)
            return BackendFailure(reason=f"Malformed payload: {e}", error_code="MalformedPayload")

        logger.info(
            f"[bedrock] Answer received: {len(result.output_text)} chars, "
            f"{len(result.citations)} citations"
        )
        return BackendSuccess(result=result)
