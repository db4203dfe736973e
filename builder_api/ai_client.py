"""
Client for the external project-generation service.

The service receives a natural-language prompt and answers with a project
outline: a name, a description and a list of components. The answer is only
parsed here; it is merged into a project graph by
``Project.import_components`` so that it goes through the same validation as
manual edits.
"""

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from app_builder_core.exceptions import CorruptDocumentError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a full-stack web application architect.
Analyze the user's project requirements, break the project down into components
and provide code snippets for the key ones.

Answer with a single JSON object of this shape:
{
    "projectName": string,
    "description": string,
    "components": [
        {
            "type": string,
            "props": {
                "name": string,
                "description": string,
                "technology": string,
                "dependencies": string[]
            },
            "code": string
        }
    ]
}

Do not wrap the JSON object in a Markdown code block."""

_FENCE_RE = re.compile(r'^```(?:json)?\s*\n|\n?```\s*$')


@dataclass
class GenerationResult:
    """Parsed answer of the generation service."""
    project_name: str
    description: str
    components: List[Dict[str, Any]] = field(default_factory=list)


def new_project_id() -> str:
    """Public id for a generated project, e.g. ``proj_1a2b3c4d``."""
    return f"proj_{uuid.uuid4().hex[:8]}"


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence, if the model added one."""
    return _FENCE_RE.sub('', text.strip())


def parse_generation(text: str) -> GenerationResult:
    """Parse the model's text answer into a GenerationResult.

    Raises UpstreamUnavailableError for text that is not JSON and
    CorruptDocumentError for JSON that lacks the required fields.
    """
    try:
        payload = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise UpstreamUnavailableError('ai', f"Failed to parse AI response: {e}") from e

    if not isinstance(payload, dict) or not payload.get('projectName') \
            or not isinstance(payload.get('components'), list):
        raise CorruptDocumentError("Invalid AI response format: projectName and components are required")

    return GenerationResult(
        project_name=str(payload['projectName']),
        description=str(payload.get('description') or ''),
        components=payload['components'],
    )


class GenerationClient:
    """Calls the generation service over HTTP."""

    def __init__(self, url: str, api_key: Optional[str] = None, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def generate(self, prompt: str, user_info: Optional[Dict[str, Any]] = None) -> GenerationResult:
        """Ask the service for a project outline matching ``prompt``."""
        if not self.url:
            raise UpstreamUnavailableError('ai', "No generation service configured")

        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"

        body = {'systemPrompt': SYSTEM_PROMPT, 'prompt': prompt}
        if user_info:
            body['userInfo'] = user_info

        try:
            response = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            logger.warning(f"Generation request timed out after {self.timeout}s")
            raise UpstreamUnavailableError('ai', "Generation service timed out") from e
        except requests.RequestException as e:
            logger.error(f"Generation request failed: {e}")
            raise UpstreamUnavailableError('ai', f"Generation service unreachable: {e}") from e

        if response.status_code == 429:
            raise UpstreamUnavailableError('ai', "Generation service rate limit exceeded",
                                           {'statusCode': 429})
        if not response.ok:
            logger.error(f"Generation service returned HTTP {response.status_code}")
            raise UpstreamUnavailableError('ai', f"Generation service returned HTTP {response.status_code}",
                                           {'statusCode': response.status_code})

        return parse_generation(self._response_text(response))

    @staticmethod
    def _response_text(response: requests.Response) -> str:
        # Services either return the model text as-is or wrap it as {"text": ...}.
        content_type = response.headers.get('Content-Type', '')
        if 'application/json' in content_type:
            try:
                payload = response.json()
            except ValueError:
                return response.text
            if isinstance(payload, dict) and isinstance(payload.get('text'), str):
                return payload['text']
            return json.dumps(payload)
        return response.text
