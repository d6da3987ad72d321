"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and makes fixtures
available to all test files.
"""

import sys
import os

# Set AWS region for tests (required by boto3 clients even with moto mocking)
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-west-2')
os.environ.setdefault('AWS_REGION', 'us-west-2')

# Dummy credentials so boto3 never picks up a real profile during tests
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')

# Add tests directory to path so shared fixtures can be imported
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

# Add query-docs directory to path so the Lambda's flat module imports work
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'query-docs')))

from fixtures.sample_data import (  # noqa: E402,F401
    api_gateway_event,
    bedrock_response_no_citations,
    bedrock_response_s3,
    bedrock_response_web,
    orchestrator_config,
    sample_question,
)
