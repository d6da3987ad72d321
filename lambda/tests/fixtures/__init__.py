"""Shared test data for Lambda function tests."""
