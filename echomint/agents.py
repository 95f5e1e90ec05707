"""
Agent Registry Module

Static catalog of agent definitions. Each agent is a named configuration
(system prompt + model selection) that parameterizes a completion call.

The catalog is built once at startup, either from DEFAULT_AGENTS or from a
JSON file named by AGENTS_FILE, and is never mutated afterwards. Reads need
no synchronization.

Usage:
    from echomint.agents import AgentRegistry

    registry = AgentRegistry.default()
    agent = registry.find("agent_002")
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from echomint.errors import AgentNotFoundError, ConfigurationError
from echomint.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Agent:
    """
    An immutable agent definition.

    Attributes:
        id: Stable identifier (e.g. "agent_002")
        name: Human-readable name
        description: Short description of the agent's purpose
        capabilities: Capability tags (e.g. "web3", "coding")
        model: Provider model identifier
        system_prompt: Opening instruction sent as the system turn
    """
    id: str
    name: str
    description: str
    model: str
    system_prompt: str
    capabilities: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Agent":
        try:
            return cls(
                id=str(data["id"]),
                name=str(data["name"]),
                description=str(data.get("description", "")),
                model=str(data["model"]),
                system_prompt=str(data["system_prompt"]),
                capabilities=tuple(str(c) for c in data.get("capabilities", ())),
            )
        except KeyError as e:
            raise ConfigurationError(f"Agent definition missing field {e}")

    def to_summary(self) -> Dict[str, str]:
        """Public view returned by list_agents."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "model": self.model,
        }


DEFAULT_MODEL = "mixtral-8x7b-32768"

DEFAULT_AGENTS: Tuple[Agent, ...] = (
    Agent(
        id="agent_001",
        name="General Assistant",
        description="A helpful general-purpose AI assistant",
        capabilities=("text", "conversation", "reasoning"),
        model=DEFAULT_MODEL,
        system_prompt=(
            "You are a helpful, friendly, and knowledgeable AI assistant. "
            "Provide clear, accurate, and concise responses."
        ),
    ),
    Agent(
        id="agent_002",
        name="Web3 Expert",
        description="Specialized in blockchain, Web3, and cryptocurrency technologies",
        capabilities=("web3", "crypto", "blockchain", "nft"),
        model=DEFAULT_MODEL,
        system_prompt=(
            "You are a Web3 and blockchain expert. Help users understand cryptocurrency, "
            "NFTs, smart contracts, DeFi, and related technologies. Provide accurate "
            "technical information and practical guidance."
        ),
    ),
    Agent(
        id="agent_003",
        name="Voice Specialist",
        description="Optimized for natural voice conversations and audio interactions",
        capabilities=("voice", "audio", "conversation"),
        model=DEFAULT_MODEL,
        system_prompt=(
            "You are an AI assistant optimized for voice interactions. Respond in a natural, "
            "conversational tone suitable for speech. Keep responses concise and easy to "
            "understand when spoken aloud."
        ),
    ),
    Agent(
        id="agent_004",
        name="Code Assistant",
        description="Expert in programming, software development, and technical problem-solving",
        capabilities=("coding", "debugging", "technical"),
        model=DEFAULT_MODEL,
        system_prompt=(
            "You are an expert programming assistant. Help users with code, debugging, "
            "architecture, and technical decisions. Provide clear explanations and working "
            "code examples."
        ),
    ),
)


class AgentRegistry:
    """
    Read-only, ordered catalog of agents.

    Example:
        registry = AgentRegistry(DEFAULT_AGENTS)
        for agent in registry.list():
            print(agent.id, agent.name)
    """

    def __init__(self, agents: Iterable[Agent]):
        ordered = tuple(agents)
        by_id: Dict[str, Agent] = {}
        for agent in ordered:
            if agent.id in by_id:
                raise ConfigurationError(f"Duplicate agent id: {agent.id}")
            by_id[agent.id] = agent
        self._agents = ordered
        self._by_id = by_id

    @classmethod
    def default(cls) -> "AgentRegistry":
        return cls(DEFAULT_AGENTS)

    @classmethod
    def from_file(cls, path: str) -> "AgentRegistry":
        """
        Load a catalog from a JSON file containing a list of agent objects.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        file_path = Path(path)
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot load agents file {path}: {e}")
        if not isinstance(data, list) or not data:
            raise ConfigurationError(f"Agents file {path} must contain a non-empty list")
        registry = cls(Agent.from_dict(item) for item in data)
        logger.info(f"Loaded {len(registry)} agents from {path}")
        return registry

    @classmethod
    def from_settings(cls, agents_file: Optional[str] = None) -> "AgentRegistry":
        if agents_file:
            return cls.from_file(agents_file)
        return cls.default()

    def list(self) -> Tuple[Agent, ...]:
        """All agents in catalog order."""
        return self._agents

    def find(self, agent_id: str) -> Agent:
        """
        Look up an agent by id.

        Raises:
            AgentNotFoundError: If no agent has this id
        """
        agent = self._by_id.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    @property
    def models(self) -> Tuple[str, ...]:
        return tuple(a.model for a in self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._by_id
