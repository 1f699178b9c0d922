"""
Configuration for toolgate.

Settings are plain YAML validated by Pydantic. Every field has a default, so
an empty file (or no file at all) yields a working in-memory setup that uses
the deterministic fallback model when Ollama is not reachable.

Example:
    agent:
      max_iterations: 5
      working_directory: ~/projects/demo
    security:
      approval_timeout_seconds: 120
      default_permission_level: user
      backup_directory: ~/.toolgate/backups
      audit_db_path: ~/.toolgate/audit.db
      user_levels:
        alice: administrator
    llm:
      model: qwen2.5:0.5b
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from toolgate.schema import PermissionLevel

if TYPE_CHECKING:
    from toolgate.agent.orchestrator import AgentOrchestrator
    from toolgate.security.approval import ApprovalProvider


def _parse_level(value: Any) -> Any:
    if isinstance(value, (str, int)):
        return PermissionLevel.parse(value)
    return value


class AgentSettings(BaseModel):
    """Orchestrator settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_iterations: int = Field(default=5, ge=0, description="ReAct iteration bound")
    working_directory: str = Field(default=".", description="Base directory for tools")
    tool_timeout_seconds: float = Field(default=300.0, gt=0, description="Per-tool timeout")
    client_identifier: str | None = Field(
        default=None,
        description="Recorded in audit entries (default: hostname)",
    )


class SecuritySettings(BaseModel):
    """
    SecurityManager settings.

    Attributes:
        approval_timeout_seconds: Seconds to wait for an approver (None waits forever)
        default_permission_level: Level for users on first reference
        backup_directory: Where file backups go (None records metadata only)
        audit_db_path: SQLite file for audit/backups/approvals (None keeps them in memory)
        user_levels: Permission levels applied at startup, by user id
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    approval_timeout_seconds: float | None = Field(default=300.0, gt=0)
    default_permission_level: PermissionLevel = PermissionLevel.USER
    backup_directory: str | None = None
    audit_db_path: str | None = None
    user_levels: dict[str, PermissionLevel] = Field(default_factory=dict)

    @field_validator("default_permission_level", mode="before")
    @classmethod
    def parse_default_level(cls, v: Any) -> Any:
        return _parse_level(v)

    @field_validator("user_levels", mode="before")
    @classmethod
    def parse_user_levels(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(user): _parse_level(level) for user, level in v.items()}
        return v


class LLMSettings(BaseModel):
    """Ollama connection and sampling settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=True, description="Use Ollama when it is reachable")
    base_url: str = "http://localhost:11434"
    model: str = "qwen2.5:0.5b"
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, ge=1)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "WARNING"
    file: str | None = None


class Settings(BaseModel):
    """Complete toolgate configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    agent: AgentSettings = Field(default_factory=AgentSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(path: Path | str | None = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Path to the YAML file; None returns the defaults

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    if path is None:
        return Settings()

    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return Settings.model_validate(data or {})


def load_settings_from_string(content: str) -> Settings:
    """Load settings from a YAML string."""
    data = yaml.safe_load(content)
    return Settings.model_validate(data or {})


def _expand(path: str) -> str:
    if path == ":memory:":
        return path
    return str(Path(path).expanduser())


def build_orchestrator(
    settings: Settings | None = None,
    approval_provider: "ApprovalProvider | None" = None,
) -> "AgentOrchestrator":
    """
    Wire registry, security manager, language model and orchestrator.

    Args:
        settings: Configuration (defaults if None)
        approval_provider: Overrides the simulated approval provider

    Returns:
        A ready AgentOrchestrator. Close it with
        `orchestrator.security.close()` when done.
    """
    from toolgate.agent.orchestrator import AgentConfig, AgentOrchestrator
    from toolgate.llm.ollama import OllamaConfig, OllamaModel
    from toolgate.security.backup import FileCopyBackupStrategy, NullBackupStrategy
    from toolgate.security.manager import SecurityManager
    from toolgate.store import MemoryStore, SQLiteStore
    from toolgate.tools.registry import build_default_registry

    settings = settings or Settings()
    working_directory = _expand(settings.agent.working_directory)

    sec = settings.security
    store = SQLiteStore(_expand(sec.audit_db_path)) if sec.audit_db_path else MemoryStore()
    backup_strategy = (
        FileCopyBackupStrategy(_expand(sec.backup_directory))
        if sec.backup_directory
        else NullBackupStrategy()
    )
    security = SecurityManager(
        store=store,
        approval_provider=approval_provider,
        backup_strategy=backup_strategy,
        approval_timeout_seconds=sec.approval_timeout_seconds,
        default_permission_level=sec.default_permission_level,
        working_directory=working_directory,
    )
    for user_id, level in sec.user_levels.items():
        security.set_user_permission_level(user_id, level)

    language_model = None
    if settings.llm.enabled:
        llm = settings.llm
        language_model = OllamaModel(
            OllamaConfig(
                base_url=llm.base_url,
                model=llm.model,
                timeout_seconds=llm.timeout_seconds,
                max_retries=llm.max_retries,
                retry_delay_seconds=llm.retry_delay_seconds,
                temperature=llm.temperature,
                max_tokens=llm.max_tokens,
            )
        )

    agent_config = AgentConfig(
        max_iterations=settings.agent.max_iterations,
        working_directory=working_directory,
        tool_timeout_seconds=settings.agent.tool_timeout_seconds,
    )
    if settings.agent.client_identifier:
        agent_config.client_identifier = settings.agent.client_identifier

    return AgentOrchestrator(
        registry=build_default_registry(),
        security=security,
        language_model=language_model,
        config=agent_config,
    )
