"""
Command Interpreters

Adapters that turn free text ("John paid 300 for dinner with Alice") into
{amount, reason, payer, members[]} by asking a language model.

CRITICAL BOUNDARIES:
- The model is a TRANSLATOR, not a ledger. Its output is proposed data
  and is re-validated by CommandValidator before anything is saved.
- One request per command. No retries: a command that failed should be
  retyped, not silently replayed.

Failure modes:
- InterpreterUnavailableError: model unreachable, timed out, HTTP error
- InterpreterResponseError: the reply had no usable JSON object
"""

import json
from abc import ABC, abstractmethod
from typing import Optional

import google.generativeai as genai
import httpx
import structlog

from splitmate.config import GeminiSettings, OllamaSettings, get_settings
from splitmate.errors import InterpreterResponseError, InterpreterUnavailableError


logger = structlog.get_logger()


PROMPT_TEMPLATE = """You turn expense commands into JSON for a bill-splitting app.

Return ONLY a JSON object in this exact format:
{{"amount": 300, "reason": "dinner", "payer": "me", "members": ["Alice"]}}

- amount: the number spent, greater than zero, without currency symbols
- reason: a short phrase saying what the money was for
- payer: "me" if the speaker paid, otherwise the name of whoever paid
- members: the other people sharing the cost, never the payer and never "me";
  use [] if nobody else is named

Command: \"\"\"{command}\"\"\"
"""


def build_prompt(command: str) -> str:
    return PROMPT_TEMPLATE.format(command=command)


def extract_json_object(text: str, service: str) -> dict:
    """
    Pull the outermost {...} out of a model reply.

    Models often wrap JSON in prose or code fences.
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise InterpreterResponseError(service, "No JSON found in interpreter response")

    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise InterpreterResponseError(
            service, f"Interpreter returned malformed JSON: {e.msg}"
        ) from e

    if not isinstance(data, dict):
        raise InterpreterResponseError(service, "Interpreter response is not a JSON object")
    return data


class CommandInterpreter(ABC):
    """Natural-language to structured-expense translator."""

    service_name: str = "interpreter"

    @abstractmethod
    async def interpret(self, command: str) -> dict:
        """
        Return the raw JSON object the model produced.

        Raises:
            InterpreterUnavailableError: If the model could not be reached
            InterpreterResponseError: If the reply contained no JSON object
        """
        pass


class OllamaCommandInterpreter(CommandInterpreter):
    """
    Locally-hosted model served by Ollama.

    POST {base_url}/api/generate with stream disabled; the completion is
    in the "response" field of the reply.
    """

    service_name = "ollama"

    def __init__(
        self,
        settings: Optional[OllamaSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings().ollama
        self._client = client

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            f"{self._settings.base_url.rstrip('/')}/api/generate",
            json=payload,
            timeout=self._settings.timeout_seconds,
        )

    async def interpret(self, command: str) -> dict:
        payload = {
            "model": self._settings.model,
            "prompt": build_prompt(command),
            "stream": False,
        }

        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Interpreter returned an error status",
                service=self.service_name,
                status_code=e.response.status_code,
            )
            raise InterpreterUnavailableError(
                self.service_name,
                f"Interpreter request failed with status {e.response.status_code}",
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "Interpreter unreachable",
                service=self.service_name,
                error=str(e),
            )
            raise InterpreterUnavailableError(
                self.service_name,
                f"Could not reach interpreter at {self._settings.base_url}",
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise InterpreterResponseError(
                self.service_name, "Interpreter reply is not JSON"
            ) from e

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise InterpreterResponseError(
                self.service_name, "Interpreter reply has no response text"
            )
        return extract_json_object(text.strip(), self.service_name)


class GeminiCommandInterpreter(CommandInterpreter):
    """Hosted Gemini model through google-generativeai."""

    service_name = "gemini"

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def interpret(self, command: str) -> dict:
        try:
            response = await self._model.generate_content_async(build_prompt(command))
            text = response.text
        except Exception as e:
            logger.error(
                "Interpreter call failed",
                service=self.service_name,
                error=str(e),
            )
            raise InterpreterUnavailableError(
                self.service_name, f"Gemini request failed: {e}"
            ) from e
        return extract_json_object(text.strip(), self.service_name)


def create_command_interpreter(provider: Optional[str] = None) -> CommandInterpreter:
    """Build the interpreter selected by APP_INTERPRETER_PROVIDER."""
    provider = provider or get_settings().app.interpreter_provider
    if provider == "gemini":
        return GeminiCommandInterpreter()
    if provider == "ollama":
        return OllamaCommandInterpreter()
    raise ValueError(f"Unknown interpreter provider: {provider}")
