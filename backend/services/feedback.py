"""Feedback generation for graded submissions.

Feedback is produced by an OpenAI-compatible chat-completions endpoint when an
API key is configured. Whenever the key is missing or the remote call fails,
rule-based feedback is returned instead, so callers never see an exception.
Feedback never influences the correctness verdict.
"""

import json
import logging
import re
from typing import Any

import requests
from pydantic import BaseModel, Field

from backend.core import config

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = 'You are a helpful SQL tutor who supports students while they learn.'
JSON_OBJECT_PATTERN = re.compile(r'\{[\s\S]*\}')
SCHEMA_PROMPT_LIMIT = 1000
RESULT_PROMPT_LIMIT = 500
RAW_FEEDBACK_LIMIT = 200


class FeedbackRequest(BaseModel):
    student_query: str
    solution_query: str
    exercise_title: str
    exercise_description: str
    is_correct: bool
    student_result: list[dict[str, Any]] | None = None
    solution_result: list[dict[str, Any]] | None = None
    error_message: str | None = None
    database_schema: str | None = None


class FeedbackResponse(BaseModel):
    feedback: str
    hints: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    explanation: str = ''


class FeedbackServiceError(Exception):
    """Raised internally when the remote feedback call cannot be completed."""


def build_prompt(request: FeedbackRequest) -> str:
    verdict = 'CORRECT' if request.is_correct else 'NOT CORRECT'
    prompt = (
        'You are a helpful SQL tutor. Analyse the following SQL exercise and the student\'s solution.\n\n'
        f'**Exercise:** {request.exercise_title}\n'
        f'**Description:** {request.exercise_description}\n\n'
        f'**Reference solution:**\n```sql\n{request.solution_query}\n```\n\n'
        f'**Student solution:**\n```sql\n{request.student_query}\n```\n\n'
        f'**Correctness:** {verdict}\n'
    )

    if request.database_schema:
        prompt += f'\n**Database schema:**\n```sql\n{request.database_schema[:SCHEMA_PROMPT_LIMIT]}...\n```\n'

    if request.error_message:
        prompt += f'\n**Error message:** {request.error_message}'

    if not request.is_correct and request.student_result is not None and request.solution_result is not None:
        student_json = json.dumps(request.student_result, default=str)[:RESULT_PROMPT_LIMIT]
        solution_json = json.dumps(request.solution_result, default=str)[:RESULT_PROMPT_LIMIT]
        prompt += (
            f'\n**Student result:** {student_json}\n'
            f'**Expected result:** {solution_json}'
        )

    prompt += """

Return constructive feedback in the following JSON format:
{
  "feedback": "Main feedback (2-3 sentences)",
  "hints": ["Hint 1", "Hint 2"],
  "suggestions": ["Suggestion 1", "Suggestion 2"],
  "explanation": "Detailed explanation of the solution"
}

Rules:
- Be encouraging and constructive
- Explain SQL concepts where needed
- Give specific hints for improvement
- Never reveal the full reference solution
- Keep the feedback concise but helpful"""

    return prompt


def _as_text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def parse_response(content: str) -> FeedbackResponse:
    match = JSON_OBJECT_PATTERN.search(content)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            logger.warning('Could not parse feedback JSON: %s', exc)
        else:
            if isinstance(parsed, dict):
                return FeedbackResponse(
                    feedback=str(parsed.get('feedback') or 'Feedback could not be generated.'),
                    hints=_as_text_list(parsed.get('hints')),
                    suggestions=_as_text_list(parsed.get('suggestions')),
                    explanation=str(parsed.get('explanation') or ''),
                )

    return FeedbackResponse(
        feedback=content[:RAW_FEEDBACK_LIMIT] + '...',
        hints=[],
        suggestions=[],
        explanation=content,
    )


def fallback_feedback(request: FeedbackRequest) -> FeedbackResponse:
    if request.is_correct:
        return FeedbackResponse(
            feedback='Excellent! Your solution is correct and returns the expected result.',
            hints=['You solved the exercise!'],
            suggestions=['Try a harder exercise next.'],
            explanation='Your SQL query matches the reference solution and returns the correct result.',
        )

    hints: list[str] = []
    suggestions: list[str] = []
    error_message = (request.error_message or '').lower()

    if error_message:
        if 'syntax error' in error_message:
            hints.append('There is a syntax error in your SQL query.')
            suggestions.append('Check the SQL syntax, especially quotes and commas.')
        if 'does not exist' in error_message or 'not found' in error_message:
            hints.append('A table or column does not exist.')
            suggestions.append('Check the table and column names against the schema.')

    if not hints:
        hints.append('Your query runs, but the result is not correct.')
        suggestions.append('Compare your result with the expected output.')
        suggestions.append('Check your WHERE conditions and JOIN clauses.')

    return FeedbackResponse(
        feedback='Your solution is not quite right yet. Have a look at the hints below!',
        hints=hints,
        suggestions=suggestions,
        explanation='Analyse the task again and compare the result of your query with the expected output.',
    )


class FeedbackService:
    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.api_key = config.OPENAI_API_KEY if api_key is None else api_key
        self.api_url = api_url or config.OPENAI_API_URL
        self.model = model or config.OPENAI_MODEL
        self.timeout = timeout or config.LLM_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def generate_feedback(self, request: FeedbackRequest) -> FeedbackResponse:
        if not self.api_key:
            return fallback_feedback(request)

        try:
            content = self.call_model(build_prompt(request))
        except Exception as exc:
            logger.warning('LLM feedback unavailable, using fallback: %s', exc)
            return fallback_feedback(request)

        if not content.strip():
            return fallback_feedback(request)
        return parse_response(content)

    def call_model(self, prompt: str) -> str:
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }
        payload = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': prompt},
            ],
            'max_tokens': config.LLM_MAX_TOKENS,
            'temperature': config.LLM_TEMPERATURE,
        }

        try:
            response = self.session.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise FeedbackServiceError(f'Feedback request failed: {exc}') from exc

        try:
            content = data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as exc:
            raise FeedbackServiceError('Feedback response has no message content') from exc
        return content if isinstance(content, str) else ''


feedback_service = FeedbackService()


def get_feedback_service() -> FeedbackService:
    return feedback_service
