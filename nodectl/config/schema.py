# nodectl/config/schema.py
"""
Pydantic configuration models for nodectl.

All models use extra="ignore" to allow unknown YAML keys without crashing,
and frozen=True because a controller's configuration never changes after
construction.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InitOptions(BaseModel):
    """
    Repository initialization options.

    Unset fields stay None so that merging layers only overrides what a layer
    actually sets.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    empty_repo: bool | None = Field(
        default=None, description="Skip adding default content to a new repository"
    )
    profiles: list[str] | None = Field(
        default=None, description="Configuration profiles applied on init (e.g. 'test')"
    )

    @classmethod
    def coerce(cls, value: "InitOptions | dict[str, Any] | bool | None") -> "InitOptions":
        """Normalize a bool/dict/None/InitOptions value; a bare bool means defaults."""
        if isinstance(value, InitOptions):
            return value
        if value is None or isinstance(value, bool):
            return cls()
        return cls.model_validate(value)

    @classmethod
    def merge(cls, *layers: "InitOptions") -> "InitOptions":
        """
        Merge option layers left to right, later layers winning.

        None values never override an earlier layer.
        """
        merged: dict[str, Any] = {}
        for layer in layers:
            merged.update(layer.model_dump(exclude_none=True))
        return cls(**merged)


class ClientConfig(BaseModel):
    """HTTP settings for the node API client strategies."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    flavor: Literal["kubo-rpc", "http-api"] = Field(
        default="kubo-rpc", description="Client strategy the CLI wires in for remote nodes"
    )
    timeout: float = Field(
        default=30.0, gt=0.0, description="Request timeout in seconds"
    )


class ControllerConfig(BaseModel):
    """Root configuration for a node controller."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: Literal["proc", "remote"] = Field(
        default="proc", description="Execution mode: in-process node or remote API"
    )
    disposable: bool = Field(
        default=True, description="Remove the repository automatically on stop"
    )
    test: bool = Field(
        default=False, description="Apply the 'test' profile to new repositories"
    )
    repo: str | None = Field(
        default=None,
        description="Repository path (None = temp dir if disposable, else user data dir)",
    )
    api_addr: str | None = Field(
        default=None,
        description="Remote node API address, e.g. /ip4/127.0.0.1/tcp/5001 (remote mode)",
    )
    init: InitOptions = Field(default_factory=InitOptions)
    client: ClientConfig = Field(default_factory=ClientConfig)

    @field_validator("init", mode="before")
    @classmethod
    def _coerce_init(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return {}
        return value
