"""
Configuration for the query-docs Lambda.

Settings are read from environment variables once per container and passed
explicitly to the orchestrator. The knowledge base id falls back to SSM
Parameter Store when it is not set in the environment.
"""

import logging
import os
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger()

DEFAULT_MODEL_ID = "anthropic.claude-3-haiku-20240307-v1:0"
DEFAULT_REGION = "us-east-1"
DEFAULT_PROMPT_TEMPLATE = (
    "Assuma que você é um advogado especializado em documentos e contratos "
    "e vai sempre responder em pt-BR a questão: {question}"
)


class ConfigurationError(Exception):
    """Raised when the function is deployed with missing or invalid settings."""


class OrchestratorConfig(BaseModel):
    """
    Settings for a single knowledge base and generation model.

    Attributes:
        knowledge_base_id: Bedrock knowledge base to query
        region: AWS region used to build foundation model ARNs
        model_id: Default generation model id (or full ARN)
        allowed_model_ids: Model ids a caller may request via ``modelId``
        prompt_template: Input text template, must contain ``{question}``
        connect_timeout: Backend connect timeout in seconds
        read_timeout: Backend read timeout in seconds
    """

    knowledge_base_id: str = Field(..., min_length=1)
    region: str = Field(default=DEFAULT_REGION, min_length=1)
    model_id: str = Field(default=DEFAULT_MODEL_ID, min_length=1)
    allowed_model_ids: List[str] = Field(default_factory=list)
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE
    connect_timeout: float = Field(default=5, gt=0)
    read_timeout: float = Field(default=25, gt=0)

    model_config = ConfigDict(protected_namespaces=())

    @field_validator("prompt_template")
    @classmethod
    def _template_has_question(cls, value: str) -> str:
        if "{question}" not in value:
            raise ValueError("prompt_template must contain a {question} placeholder")
        try:
            value.format(question="")
        except (KeyError, IndexError, AttributeError, ValueError) as e:
            raise ValueError(
                f"prompt_template may only use the {{question}} field, escape other braces as {{{{ }}}}: {e!r}"
            )
        return value

    def is_allowed_model(self, model_id: str) -> bool:
        """True for the default model and any allow-listed model id."""
        return model_id == self.model_id or model_id in self.allowed_model_ids


def get_knowledge_base_id_from_ssm(ssm_client=None) -> str:
    """
    Fetch the knowledge base id from SSM Parameter Store.

    Args:
        ssm_client: Optional boto3 SSM client (created when omitted)

    Returns:
        str: Knowledge base id

    Raises:
        ConfigurationError: If the parameter is missing or cannot be read
    """
    env = os.environ.get("ENV", "dev")
    app_name = os.environ.get("APP_NAME", "docs-qa-gateway")
    param_name = f"/{env}/{app_name}/bedrock/knowledge-base-id"

    ssm_client = ssm_client or boto3.client("ssm")

    try:
        response = ssm_client.get_parameter(Name=param_name)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"[config] Failed to read {param_name} from SSM: {e}")
        raise ConfigurationError(f"Knowledge base id not available: {param_name}") from e

    value = response.get("Parameter", {}).get("Value")
    if not value:
        raise ConfigurationError(f"Knowledge base id not found in parameter: {param_name}")

    logger.info(f"[config] Retrieved knowledge base id from SSM: {param_name}")
    return value


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(ssm_client=None) -> OrchestratorConfig:
    """
    Build the orchestrator configuration from the environment.

    Environment variables:
        KNOWLEDGE_BASE_ID, AWS_REGION / AWS_DEFAULT_REGION, MODEL_ID,
        ALLOWED_MODEL_IDS, PROMPT_TEMPLATE, BACKEND_CONNECT_TIMEOUT,
        BACKEND_READ_TIMEOUT

    Returns:
        OrchestratorConfig: Validated settings

    Raises:
        ConfigurationError: If a setting is missing or invalid
    """
    knowledge_base_id = os.environ.get("KNOWLEDGE_BASE_ID") or get_knowledge_base_id_from_ssm(ssm_client)

    settings = {
        "knowledge_base_id": knowledge_base_id,
        "region": os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
        "model_id": os.environ.get("MODEL_ID") or DEFAULT_MODEL_ID,
        "allowed_model_ids": _split_csv(os.environ.get("ALLOWED_MODEL_IDS")),
    }

    # Optional overrides keep the model defaults when unset
    optional_env = {
        "prompt_template": "PROMPT_TEMPLATE",
        "connect_timeout": "BACKEND_CONNECT_TIMEOUT",
        "read_timeout": "BACKEND_READ_TIMEOUT",
    }
    for field_name, env_name in optional_env.items():
        if os.environ.get(env_name):
            settings[field_name] = os.environ[env_name]

    try:
        config = OrchestratorConfig(**settings)
    except ValidationError as e:
        logger.error(f"[config] Invalid configuration: {e}")
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.info(
        f"[config] Loaded configuration: knowledge_base_id={config.knowledge_base_id}, "
        f"model_id={config.model_id}, region={config.region}"
    )
    return config
