"""Command interpreter adapters."""

from splitmate.agents.interpreter import (
    CommandInterpreter,
    GeminiCommandInterpreter,
    OllamaCommandInterpreter,
    create_command_interpreter,
    extract_json_object,
)

__all__ = [
    "CommandInterpreter",
    "GeminiCommandInterpreter",
    "OllamaCommandInterpreter",
    "create_command_interpreter",
    "extract_json_object",
]
