"""
Tests for error classification
"""
import json
import logging

import httpx
import pytest
from google.genai import errors as genai_errors

from pixpy.llm.base import ProviderNotConfigured
from pixpy.llm.errors import (
    CLASSIFICATION_RULES,
    INVALID_KEY_MESSAGE,
    MISSING_KEY_MESSAGE,
    NETWORK_MESSAGE,
    ClassifiedError,
    ErrorCategory,
    classify,
    message_basis,
)

BAD_KEY_BODY = {'error': {'code': 400, 'message': 'API key not valid. Please pass a valid API key.', 'status': 'INVALID_ARGUMENT'}}


class TestMessageBasis:
    def test_nested_json_message_is_preferred(self):
        raw = Exception(json.dumps(BAD_KEY_BODY))
        assert message_basis(raw) == 'API key not valid. Please pass a valid API key.'

    def test_sdk_api_error_message(self):
        raw = genai_errors.ClientError(400, BAD_KEY_BODY)
        assert 'API key not valid' in message_basis(raw)

    def test_plain_message_kept(self):
        assert message_basis(RuntimeError('quota exceeded')) == 'quota exceeded'

    def test_empty_message_falls_back(self):
        assert message_basis(RuntimeError()) == 'Unknown communication error'

    def test_json_without_error_object(self):
        assert message_basis(Exception('{"status": 500}')) == '{"status": 500}'


class TestClassify:
    def test_invalid_key_from_json_body(self):
        error = classify(Exception(json.dumps(BAD_KEY_BODY)), 'filter')

        assert error.category == ErrorCategory.INVALID_CREDENTIAL
        assert error.user_message == INVALID_KEY_MESSAGE
        assert error.user_message.startswith('API key is invalid')
        assert error.action == 'filter'

    def test_invalid_key_from_sdk_error(self):
        error = classify(genai_errors.ClientError(400, BAD_KEY_BODY), 'retouch')
        assert error.category == ErrorCategory.INVALID_CREDENTIAL

    def test_missing_credential(self):
        error = classify(ProviderNotConfigured(MISSING_KEY_MESSAGE), 'texture')

        assert error.category == ErrorCategory.INVALID_CREDENTIAL
        assert error.user_message == MISSING_KEY_MESSAGE

    def test_xhr_error_text_is_network_failure(self):
        error = classify(Exception('Rpc failed due to xhr error. error code: 6'), 'fusion')

        assert error.category == ErrorCategory.NETWORK_FAILURE
        assert error.user_message == NETWORK_MESSAGE

    @pytest.mark.parametrize('raw', [
        httpx.ConnectError('connection refused'),
        httpx.ReadTimeout('timed out'),
        ConnectionResetError('reset by peer'),
        TimeoutError(),
    ])
    def test_transport_exceptions_are_network_failures(self, raw):
        assert classify(raw, 'adjustment').category == ErrorCategory.NETWORK_FAILURE

    def test_unknown_keeps_service_message(self):
        error = classify(Exception(json.dumps({'error': {'message': 'Resource has been exhausted'}})), 'filter')

        assert error.category == ErrorCategory.UNKNOWN
        assert error.user_message == 'Resource has been exhausted'

    def test_classified_error_passes_through(self):
        original = ClassifiedError(ErrorCategory.SERVICE_REFUSAL, 'refused', 'filter')
        assert classify(original, 'other action') is original

    def test_cause_is_kept(self):
        raw = RuntimeError('boom')
        assert classify(raw, 'retouch').cause is raw

    def test_rules_are_ordered(self):
        names = [rule.name for rule in CLASSIFICATION_RULES]
        assert names == ['missing-api-key', 'invalid-api-key', 'transport']

    def test_key_is_not_logged(self, caplog):
        raw = Exception('POST https://generativelanguage.googleapis.com/v1beta/models:generate?key=secret-value failed')
        with caplog.at_level(logging.ERROR, logger='pixpy.llm.errors'):
            classify(raw, 'filter')

        assert 'secret-value' not in caplog.text
        assert '***REDACTED***' in caplog.text


class TestClassifiedError:
    def test_display_message_names_action(self):
        error = ClassifiedError(ErrorCategory.NETWORK_FAILURE, NETWORK_MESSAGE, 'background removal')

        assert error.display_message == f"Error occurred during 'background removal': {NETWORK_MESSAGE}"
        assert str(error) == error.display_message

    def test_repr(self):
        error = ClassifiedError(ErrorCategory.UNKNOWN, 'oops', 'fusion')
        assert repr(error) == "ClassifiedError(Unknown, action='fusion', message='oops')"
