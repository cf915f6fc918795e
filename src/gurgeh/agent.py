from pydantic import BaseModel, Field

from gurgeh.capability import Capability
from gurgeh.provider import ModelProvider
from gurgeh.tools import Tool, ToolRegistry


class Agent(BaseModel):
    """
    A model, the provider that serves it, a system prompt and the tools
    the model may call. Agents hold no conversation state, so one agent
    can serve any number of concurrent exchanges.

    Args:
        name: Agent name, used in logs and traces.
        system_prompt: System prompt injected at the head of every round.
        model: Model identifier understood by the provider.
        provider: Model provider object.
        tools: Standalone tools.
        capabilities: Capabilities whose tools are added to ``tools``.
        description: Optional human-readable description.
    """

    name: str
    system_prompt: str
    model: str
    provider: ModelProvider
    tools: list[Tool] = Field(default_factory=list)
    capabilities: list[Capability] = Field(default_factory=list)
    description: str = ""
    model_config = {"arbitrary_types_allowed": True}

    @property
    def tool_registry(self) -> ToolRegistry:
        """Registry over ``tools`` plus every capability's tools.

        Raises:
            ValueError: If two tools share a name.
        """
        all_tools = list(self.tools)
        for cap in self.capabilities:
            all_tools.extend(cap.tools())
        return ToolRegistry(all_tools)
