"""Pydantic configuration models for pullchain."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..errors import ConfigError

DEFAULT_USER_AGENT = "pullchain/1.0"


class TerminalPolicy(str, Enum):
    """What the filter chain does after a terminal filter succeeds."""

    STOP = "stop"
    CONTINUE = "continue"


class FetchOptions(BaseModel):
    """
    Options used by the Fetcher to retrieve a locator.

    Instances are frozen. Use merged() to derive a new instance with
    overrides applied on top of this one; headers are merged key by key.

    Example:
        options = FetchOptions().merged({"headers": {"User-Agent": "foo"}})
        assert options.headers == {"User-Agent": "foo"}
    """

    headers: dict[str, str] = Field(
        default_factory=lambda: {"User-Agent": DEFAULT_USER_AGENT},
        description="Request headers sent with remote retrievals",
    )
    timeout: float = Field(30.0, gt=0, description="Total request timeout in seconds")
    max_content_size: int = Field(
        50 * 1024 * 1024,
        ge=1,
        description="Maximum size of a remote response body in bytes",
    )
    proxy: Optional[str] = Field(None, description="HTTP proxy URL for remote retrievals")
    encoding: str = Field("utf-8", description="Encoding used to read local files")
    extract_dir: Optional[Path] = Field(
        None,
        description="Directory archives are extracted into (temporary directory if unset)",
    )

    model_config = {"extra": "forbid", "frozen": True}

    def merged(self, overrides: Union[FetchOptions, Mapping[str, Any], None] = None) -> FetchOptions:
        """
        Return a new FetchOptions with overrides applied.

        Args:
            overrides: Mapping of option names to values, or another
                FetchOptions whose explicitly set fields win

        Returns:
            Merged options (self when there is nothing to merge)

        Raises:
            ConfigError: If an override is unknown or invalid
        """
        if overrides is None:
            return self
        if isinstance(overrides, FetchOptions):
            overrides = overrides.model_dump(exclude_unset=True)
        if not overrides:
            return self

        data = self.model_dump()
        for key, value in overrides.items():
            if key == "headers" and isinstance(value, Mapping):
                data["headers"] = {**data["headers"], **value}
            else:
                data[key] = value

        try:
            return FetchOptions.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid fetch options: {e}") from e


class FilterSpec(BaseModel):
    """A filter to register on a pipeline, by identifier."""

    name: str = Field(..., min_length=1, description="Builtin filter name or 'module:function' reference")
    params: Any = Field(None, description="Parameters passed to the filter")

    model_config = {"extra": "forbid"}


class PipelineConfig(BaseModel):
    """
    Root configuration model for a single pipeline run.

    YAML format:
        locator: https://example.com
        name: example
        options:
          headers:
            User-Agent: my-crawler
        filters:
          - name: title
          - name: links
            params:
              base: https://example.com
    """

    locator: str = Field(..., min_length=1, description="URI or filesystem path to fetch")
    name: Optional[str] = Field(None, description="Chain name reported on exit (defaults to locator)")
    options: FetchOptions = Field(default_factory=FetchOptions)
    filters: list[FilterSpec] = Field(default_factory=list)
    terminal_policy: TerminalPolicy = Field(
        TerminalPolicy.STOP,
        description="Whether a terminal filter ends the chain",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "WARNING",
        description="Logging level",
    )
    log_file: Optional[Path] = Field(None, description="Log file path")

    model_config = {"extra": "forbid"}

    @property
    def chain_name(self) -> str:
        """Name reported by the exit event."""
        return self.name or self.locator

    def to_yaml(self) -> str:
        """Serialize config to YAML string."""
        import yaml

        return yaml.dump(self.model_dump(mode="json", exclude_none=True), default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> PipelineConfig:
        """Load config from YAML string."""
        import yaml

        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError("Pipeline config must be a mapping")

        # Options given in YAML are overrides on top of the defaults
        options = data.pop("options", None)
        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid pipeline config: {e}") from e
        if options:
            config = config.model_copy(update={"options": config.options.merged(options)})
        return config

    @classmethod
    def from_yaml_file(cls, path: Path) -> PipelineConfig:
        """Load config from YAML file."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        return cls.from_yaml(text)
