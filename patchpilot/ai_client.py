"""AI provider clients for code review."""

import json
import logging
from abc import ABC, abstractmethod

from patchpilot.config import Config
from patchpilot.errors import GenerationParseFailure
from patchpilot.models import Suggestion

logger = logging.getLogger(__name__)

DEFAULT_STRUCTURED_REVIEW_PROMPT = """You are a pull request code reviewer. Provide structured code review feedback in JSON format only.

Each patch is preceded by the path of the file it belongs to on its own line.
Focus only on code quality, bugs, security issues, and best practices. Be concise but specific.

Return your response in this EXACT JSON format:

{
  "overall_review": {
    "summary": "Brief overall assessment of the PR",
    "recommendation": "APPROVE" | "REQUEST_CHANGES" | "COMMENT",
    "issues_count": number,
    "quality_score": number (1-10)
  },
  "file_reviews": [
    {
      "filename": "exact/path/to/file.ext",
      "line_comments": [
        {
          "line_number": number,
          "comment": "Specific feedback for this line",
          "severity": "error" | "warning" | "suggestion",
          "category": "bug" | "security" | "performance" | "style" | "maintainability"
        }
      ],
      "file_summary": "Overall assessment of changes in this file"
    }
  ]
}

Respond ONLY with valid JSON. No other text."""

REVIEW_SCHEMA = {
    "type": "object",
    "properties": {
        "overall_review": {
            "type": "object",
            "properties": {
                "summary": {"type": "string"},
                "recommendation": {"type": "string", "enum": ["APPROVE", "REQUEST_CHANGES", "COMMENT"]},
                "issues_count": {"type": "integer"},
                "quality_score": {"type": "integer"}
            },
            "required": ["summary", "recommendation", "issues_count", "quality_score"],
            "additionalProperties": False
        },
        "file_reviews": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "filename": {"type": "string"},
                    "line_comments": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "line_number": {"type": "integer"},
                                "comment": {"type": "string"},
                                "severity": {"type": "string", "enum": ["error", "warning", "suggestion"]},
                                "category": {
                                    "type": "string",
                                    "enum": ["bug", "security", "performance", "style", "maintainability"]
                                }
                            },
                            "required": ["line_number", "comment", "severity", "category"],
                            "additionalProperties": False
                        }
                    },
                    "file_summary": {"type": "string"}
                },
                "required": ["filename", "line_comments", "file_summary"],
                "additionalProperties": False
            }
        }
    },
    "required": ["overall_review", "file_reviews"],
    "additionalProperties": False
}


def default_review(raw_text: str = "") -> dict:
    """Minimal result used when the response cannot be parsed: one low-confidence note."""
    return {
        "overall_review": {
            "summary": "Failed to parse structured response, falling back to basic review",
            "recommendation": "COMMENT",
            "issues_count": 0,
            "quality_score": 5,
        },
        "file_reviews": [{
            "filename": "unknown",
            "line_comments": [{
                "line_number": 1,
                "comment": raw_text or "No response received",
                "severity": "suggestion",
                "category": "maintainability",
            }],
            "file_summary": "Unable to parse structured review",
        }],
    }


def _extract_json(content: str) -> str:
    if "```json" in content:
        return content.split("```json")[1].split("```")[0]
    elif "```" in content:
        return content.split("```")[1].split("```")[0]
    return content


def parse_review_response(content: str) -> dict:
    """Parse a structured review, filling in a missing overall_review or file_reviews."""
    try:
        review = json.loads(_extract_json(content or ""))
    except json.JSONDecodeError as e:
        raise GenerationParseFailure(f"Response is not valid JSON: {e}") from e
    if not isinstance(review, dict):
        raise GenerationParseFailure(f"Expected a JSON object, got {type(review).__name__}")

    file_reviews = review.get("file_reviews")
    if not isinstance(file_reviews, list):
        logger.warning("Missing or invalid file_reviews, adding default")
        file_reviews = []
    review["file_reviews"] = [r for r in file_reviews if isinstance(r, dict) and r.get("filename")]

    if not isinstance(review.get("overall_review"), dict):
        logger.warning("Missing overall_review, adding default")
        review["overall_review"] = {
            "summary": "Review completed",
            "recommendation": "COMMENT",
            "issues_count": len(review["file_reviews"]),
            "quality_score": 7,
        }
    return review


def review_or_default(content: str) -> dict:
    try:
        return parse_review_response(content)
    except GenerationParseFailure as e:
        logger.error("Error parsing JSON response: %s", e)
        return default_review(content)


def suggestions_from_review(review: dict) -> list[Suggestion]:
    """One Suggestion per reviewed file: its summary followed by its line comments."""
    suggestions = []
    for file_review in review.get("file_reviews", []):
        parts = []
        if file_review.get("file_summary"):
            parts.append(file_review["file_summary"])
        for c in file_review.get("line_comments") or []:
            severity = str(c.get("severity", "suggestion")).upper()
            parts.append(f"- Line {c.get('line_number', '?')} ({severity}): {c.get('comment', '')}")
        if parts:
            suggestions.append(Suggestion(filename=file_review["filename"], suggestion_text="\n".join(parts)))
    return suggestions


class AIClient(ABC):
    """Base class for AI clients."""

    @abstractmethod
    def review(self, system_prompt: str, user_message: str) -> dict:
        """Send review request and return the parsed structured review."""
        pass


class OpenAIClient(AIClient):
    """OpenAI API client using Chat Completions with a JSON schema response format."""

    def __init__(self, config: Config, api_key: str):
        from openai import OpenAI
        self.client = OpenAI(api_key=api_key)
        self.config = config

    def review(self, system_prompt: str, user_message: str) -> dict:
        try:
            response = self.client.chat.completions.create(
                model=self.config.model,
                max_completion_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "code_review", "strict": True, "schema": REVIEW_SCHEMA},
                },
            )
        except Exception as e:
            logger.error("Error calling OpenAI API: %s", e)
            raise
        if response.usage:
            logger.info(
                "OpenAI usage: prompt=%s completion=%s total=%s",
                response.usage.prompt_tokens, response.usage.completion_tokens, response.usage.total_tokens,
            )
        return review_or_default(response.choices[0].message.content or "")


class AnthropicClient(AIClient):
    """Anthropic Claude API client."""

    def __init__(self, config: Config, api_key: str):
        import anthropic
        self.client = anthropic.Anthropic(api_key=api_key)
        self.config = config

    def review(self, system_prompt: str, user_message: str) -> dict:
        try:
            response = self.client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}]
            )
        except Exception as e:
            logger.error("Error calling Anthropic API: %s", e)
            raise
        return review_or_default(response.content[0].text)


class OllamaClient(AIClient):
    """Ollama local model client."""

    def __init__(self, config: Config):
        self.config = config
        self.base_url = config.ollama_url

    def review(self, system_prompt: str, user_message: str) -> dict:
        import requests
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.config.model,
                    "prompt": f"{system_prompt}\n\n{user_message}",
                    "stream": False,
                    "format": "json",
                    "options": {"temperature": self.config.temperature},
                },
                timeout=300
            )
            response.raise_for_status()
        except Exception as e:
            logger.error("Error calling Ollama API: %s", e)
            raise
        return review_or_default(response.json().get("response", ""))


def create_client(config: Config, api_key: str = None) -> AIClient:
    """Factory function to create the appropriate AI client."""
    if config.provider == "openai":
        if not api_key:
            raise ValueError("OPENAI_API_KEY required for OpenAI provider")
        return OpenAIClient(config, api_key)
    elif config.provider == "anthropic":
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY required for Anthropic provider")
        return AnthropicClient(config, api_key)
    elif config.provider == "ollama":
        return OllamaClient(config)
    else:
        raise ValueError(f"Unknown provider: {config.provider}")
