"""
Unit tests for query-docs configuration loading.

Tests cover:
- Environment variable overrides and defaults
- Knowledge base id fallback to SSM Parameter Store
- Invalid settings
"""

import boto3
import pytest
from moto import mock_aws

from config import (
    DEFAULT_MODEL_ID,
    ConfigurationError,
    OrchestratorConfig,
    get_knowledge_base_id_from_ssm,
    load_config,
)

CONFIG_ENV_VARS = [
    "KNOWLEDGE_BASE_ID",
    "MODEL_ID",
    "ALLOWED_MODEL_IDS",
    "PROMPT_TEMPLATE",
    "BACKEND_CONNECT_TIMEOUT",
    "BACKEND_READ_TIMEOUT",
    "ENV",
    "APP_NAME",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Start every test without query-docs settings."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWS_REGION", "us-west-2")


class TestLoadConfig:
    """Test configuration from environment variables."""

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("KNOWLEDGE_BASE_ID", "QIXEM2LAUK")

        config = load_config()

        assert config.knowledge_base_id == "QIXEM2LAUK"
        assert config.region == "us-west-2"
        assert config.model_id == DEFAULT_MODEL_ID
        assert config.allowed_model_ids == []
        assert "{question}" in config.prompt_template
        assert config.connect_timeout == 5
        assert config.read_timeout == 25

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("KNOWLEDGE_BASE_ID", "KB123")
        monkeypatch.setenv("MODEL_ID", "anthropic.claude-3-sonnet-20240229-v1:0")
        monkeypatch.setenv("ALLOWED_MODEL_IDS", "model-a, model-b,,")
        monkeypatch.setenv("PROMPT_TEMPLATE", "Answer in English: {question}")
        monkeypatch.setenv("BACKEND_READ_TIMEOUT", "10.5")

        config = load_config()

        assert config.model_id == "anthropic.claude-3-sonnet-20240229-v1:0"
        assert config.allowed_model_ids == ["model-a", "model-b"]
        assert config.prompt_template == "Answer in English: {question}"
        assert config.read_timeout == 10.5

    def test_template_without_placeholder(self, monkeypatch):
        monkeypatch.setenv("KNOWLEDGE_BASE_ID", "KB123")
        monkeypatch.setenv("PROMPT_TEMPLATE", "No placeholder here")

        with pytest.raises(ConfigurationError):
            load_config()

    @pytest.mark.parametrize("template", [
        'Answer as JSON {"a": 1}: {question}',
        "{0} {question}",
        "{question} {context}",
    ])
    def test_template_with_unescaped_fields(self, monkeypatch, template):
        monkeypatch.setenv("KNOWLEDGE_BASE_ID", "KB123")
        monkeypatch.setenv("PROMPT_TEMPLATE", template)

        with pytest.raises(ConfigurationError):
            load_config()

    def test_template_with_escaped_braces(self, monkeypatch):
        monkeypatch.setenv("KNOWLEDGE_BASE_ID", "KB123")
        monkeypatch.setenv("PROMPT_TEMPLATE", 'Answer as JSON {{"a": 1}}: {question}')

        config = load_config()

        assert config.prompt_template.format(question="q") == 'Answer as JSON {"a": 1}: q'

    def test_invalid_timeout(self, monkeypatch):
        monkeypatch.setenv("KNOWLEDGE_BASE_ID", "KB123")
        monkeypatch.setenv("BACKEND_CONNECT_TIMEOUT", "-1")

        with pytest.raises(ConfigurationError):
            load_config()

    @mock_aws()
    def test_knowledge_base_id_from_ssm(self):
        ssm = boto3.client("ssm", region_name="us-west-2")
        ssm.put_parameter(
            Name="/dev/docs-qa-gateway/bedrock/knowledge-base-id",
            Value="KB-FROM-SSM",
            Type="String",
        )

        config = load_config(ssm_client=ssm)

        assert config.knowledge_base_id == "KB-FROM-SSM"

    @mock_aws()
    def test_ssm_parameter_uses_env_and_app_name(self, monkeypatch):
        monkeypatch.setenv("ENV", "prd")
        monkeypatch.setenv("APP_NAME", "juridico")
        ssm = boto3.client("ssm", region_name="us-west-2")
        ssm.put_parameter(
            Name="/prd/juridico/bedrock/knowledge-base-id",
            Value="KB-PRD",
            Type="String",
        )

        assert get_knowledge_base_id_from_ssm(ssm) == "KB-PRD"

    @mock_aws()
    def test_missing_knowledge_base_id(self):
        ssm = boto3.client("ssm", region_name="us-west-2")

        with pytest.raises(ConfigurationError):
            load_config(ssm_client=ssm)


class TestOrchestratorConfig:
    """Test model allow-listing."""

    def test_default_model_is_always_allowed(self):
        config = OrchestratorConfig(knowledge_base_id="KB123")

        assert config.is_allowed_model(DEFAULT_MODEL_ID)
        assert not config.is_allowed_model("other-model")

    def test_allowed_models(self):
        config = OrchestratorConfig(knowledge_base_id="KB123", allowed_model_ids=["other-model"])

        assert config.is_allowed_model("other-model")

    def test_empty_knowledge_base_id_rejected(self):
        with pytest.raises(ValueError):
            OrchestratorConfig(knowledge_base_id="")
