# Tool protocol shared by agent-facing tools.
# Changes: BaseTool and ToolDefinition with OpenAI/Anthropic schema export

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolDefinition:
    """Provider-neutral description of a tool."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    trust_level: str = "standard"

    def to_openai_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


class BaseTool(ABC):
    """Base class for tools an agent can call."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    @property
    def trust_level(self) -> str:
        return "standard"

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            trust_level=self.trust_level,
        )

    @abstractmethod
    async def execute(self, **params: Any) -> str:
        """Run the tool and return its result as text."""

    def _error(self, message: str) -> str:
        return f"Error: {message}"
