import yaml
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator, ConfigDict

from .datacls import Bind, LifecycleOptions
from .exceptions import (
    BindFormatError,
    ConfigParsingError,
    ConfigFileMissingError,
    ConfigValidationError,
    InvalidVersionError,
)
from .rules import Version


logger = logging.getLogger(__name__)


class ProxyModel(BaseModel):
    """
        Class Config-Validation Model describe `proxy`

        Unset entries fall back to the host's *_PROXY environment variables.
    """
    http: Optional[str] = None
    https: Optional[str] = None
    no: Optional[str] = None
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode='before')
    @classmethod
    def restore_no_key(cls, data: Any) -> Any:
        # YAML 1.1 reads a bare `no:` key as the boolean False
        if isinstance(data, dict) and False in data:
            data = dict(data)
            data["no"] = data.pop(False)
        return data


class BuildConfigModel(BaseModel):
    """
        Class Config-Validation Model desribe top-level of a build file
    """
    image: str
    builder: str
    run_image: str
    path: Path = Path(".")
    lifecycle_version: Optional[str] = None
    # override the builder's CNB_USER_ID / CNB_GROUP_ID
    uid: Optional[int] = Field(None, ge=0)
    gid: Optional[int] = Field(None, ge=0)
    publish: bool = False
    clear_cache: bool = False
    network: str = ""
    volumes: List[str] = Field(default_factory=list)
    proxy: ProxyModel = Field(default_factory=ProxyModel)
    model_config = ConfigDict(extra="forbid")

    @field_validator("image", "builder", "run_image")
    @classmethod
    def check_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("lifecycle_version")
    @classmethod
    def check_lifecycle_version(cls, value: Optional[str]) -> Optional[str]:
        """Lifecycle version must be semver if given"""
        if value is not None:
            try:
                Version(value)
            except InvalidVersionError as e:
                raise ValueError(str(e)) from e
        return value

    @model_validator(mode='after')
    def check_volumes(self) -> 'BuildConfigModel':
        """Every volume must be a src:dst[:mode] bind"""
        for volume in self.volumes:
            try:
                Bind.parse(volume)
            except BindFormatError as e:
                raise ValueError(str(e)) from e
        return self


class Config:
    """
    Loads and validates a build file using Pydantic models.
    It is the sole gatekeeper for configuration.
    """
    def __init__(self, config_path: str):
        self.path = Path(config_path)
        logger.info(f"Loading configuration from '{self.path}'...")
        raw_data = self._load_raw_config()

        logger.info("Validating configuration structure with Pydantic...")
        try:
            model = BuildConfigModel.model_validate(raw_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Configuration validation failed:\n{e}")

        # application path is relative to the build file
        if not model.path.is_absolute():
            model = model.model_copy(update={"path": (self.path.parent / model.path).resolve()})
        self.model = model
        logger.debug(f"Configuration model validated successfully: \n{self.model.model_dump_json(indent=2)}")
        logger.info("Configuration validation passed.")

    def _load_raw_config(self) -> Dict[str, Any]:
        try:
            content = self.path.read_text(encoding="utf-8")
            config_data = yaml.safe_load(content)
            if not isinstance(config_data, dict):
                raise ConfigParsingError("Configuration file must be a YAML document containing a dictionary.")
            logger.debug(f"Successfully parsed YAML from '{self.path}'.")
            return config_data
        except FileNotFoundError:
            raise ConfigFileMissingError(f"Configuration file not found at: {self.path}")
        except yaml.YAMLError as e:
            raise ConfigParsingError(f"Error parsing YAML file: {e}")

    def override(self, **changes: Any) -> None:
        """Apply command line overrides; None means keep the file's value."""
        changes = {key: value for key, value in changes.items() if value is not None}
        if changes:
            logger.debug(f"Applying overrides: {changes}")
            try:
                self.model = BuildConfigModel.model_validate(self.model.model_dump() | changes)
            except ValidationError as e:
                raise ConfigValidationError(f"Invalid override:\n{e}")

    def options(self) -> LifecycleOptions:
        return LifecycleOptions(
            image=self.model.image,
            run_image=self.model.run_image,
            publish=self.model.publish,
            clear_cache=self.model.clear_cache,
            network=self.model.network,
            volumes=list(self.model.volumes),
        )

    @property
    def builder(self) -> str:
        return self.model.builder
