"""
Execution Adapter
Runs submitted source code on the remote execution service (JDoodle-compatible API)
"""
from collections import namedtuple
import logging

import requests
from flask import current_app

from examgate.services.errors import ExecutionAdapterError

logger = logging.getLogger(__name__)

ExecutionResult = namedtuple('ExecutionResult', ['output', 'error'])


def normalize_language(source_code, language):
    """Correct the language from a leading comment in the source"""
    first_line = (source_code or '').strip().split('\n')[0]
    language = language or ''
    lowered = first_line.lower()

    if first_line.startswith('#'):
        if 'python' in language:
            return 'python3'
    elif first_line.startswith('//'):
        if 'java' in lowered and 'javascript' not in lowered and language != 'java':
            return 'java'
        if ('c++' in lowered or 'cpp' in lowered) and language != 'cpp':
            return 'cpp'
    return language


def format_stdin(raw_input):
    """Comma-separated literals are fed to the program one per line"""
    if raw_input and ',' in raw_input:
        return '\n'.join(part.strip() for part in raw_input.split(','))
    return raw_input or ''


class ExecutionAdapter:
    """Thin client for the code execution service; no retries"""

    def __init__(self, api_url, client_id, client_secret, version_index='4',
                 timeout=10, session=None):
        self.api_url = api_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.version_index = version_index
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config, session=None):
        return cls(
            api_url=config['EXECUTION_API_URL'],
            client_id=config['EXECUTION_CLIENT_ID'],
            client_secret=config['EXECUTION_CLIENT_SECRET'],
            version_index=config['EXECUTION_VERSION_INDEX'],
            timeout=config['EXECUTION_TIMEOUT_SECONDS'],
            session=session,
        )

    def execute(self, source_code, language, standard_input=''):
        """
        Run source code against one input.

        Returns:
            ExecutionResult: captured output, or the service's error text

        Raises:
            ExecutionAdapterError: transport failure or non-2xx response
        """
        resolved_language = normalize_language(source_code, language)
        if resolved_language != language:
            logger.debug("Language adjusted from %s to %s", language, resolved_language)

        payload = {
            'clientId': self.client_id,
            'clientSecret': self.client_secret,
            'script': source_code,
            'stdin': standard_input,
            'language': resolved_language,
            'versionIndex': self.version_index,
        }

        try:
            response = self.session.post(self.api_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Execution request failed: %s", e)
            raise ExecutionAdapterError(f"API request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.warning(
                "Execution API returned status %s: %s",
                response.status_code, response.text[:200]
            )
            raise ExecutionAdapterError(f"API request failed ({response.status_code})")

        try:
            data = response.json()
        except ValueError as e:
            raise ExecutionAdapterError("API returned a malformed response") from e

        error = data.get('error')
        if error:
            return ExecutionResult(output=None, error=str(error))
        return ExecutionResult(output=str(data.get('output') or ''), error=None)


def get_execution_adapter():
    """The adapter bound to the current app, created on first use"""
    adapter = current_app.extensions.get('examgate.execution')
    if adapter is None:
        adapter = ExecutionAdapter.from_config(current_app.config)
        current_app.extensions['examgate.execution'] = adapter
    return adapter
