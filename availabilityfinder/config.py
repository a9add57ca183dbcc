"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import RequestValidationError
from .domain.models import AvailabilityPolicy, AvailabilityPreferences, validate_timezone


def _validate_off_days(value: List[int]) -> List[int]:
    """Ensure weekdays are in valid range and deduplicated."""
    invalid_days = [day for day in value if day not in range(7)]
    if invalid_days:
        raise ValueError(f"off_days must be between 0 (Sunday) and 6 (Saturday), got {invalid_days}")
    # Preserve order while removing duplicates
    seen: set[int] = set()
    deduped: List[int] = []
    for day in value:
        if day not in seen:
            deduped.append(day)
            seen.add(day)
    return deduped


def _check_timezone(value: str) -> str:
    try:
        return validate_timezone(value)
    except RequestValidationError as exc:
        raise ValueError(str(exc)) from exc


class AvailabilityDefaults(BaseModel):
    """Defaults applied when a person or request leaves a setting out."""
    timezone: str = "UTC"
    working_hours_start: time = time(9, 0)
    working_hours_end: time = time(17, 0)
    off_days: List[int] = Field(default_factory=lambda: [0, 6])  # Sunday, Saturday
    min_hours_per_day: float = Field(default=8.0, ge=0)
    default_range_days: int = Field(default=7, ge=1)
    policy: AvailabilityPolicy = AvailabilityPolicy.EVERY_DAY

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        return _check_timezone(value)

    @field_validator("off_days")
    @classmethod
    def check_off_days(cls, value: List[int]) -> List[int]:
        return _validate_off_days(value)

    @model_validator(mode="after")
    def validate_hours_order(self) -> "AvailabilityDefaults":
        """Ensure the configured window opens before it closes."""
        if self.working_hours_end <= self.working_hours_start:
            raise ValueError("working_hours_end must be later than working_hours_start")
        return self


class Person(BaseModel):
    """A person whose availability can be checked, with optional overrides."""
    name: str  # Used as alias
    person_id: str
    calendar_ids: List[str] = Field(default_factory=list)
    timezone: Optional[str] = None
    working_hours_start: Optional[time] = None
    working_hours_end: Optional[time] = None
    off_days: Optional[List[int]] = None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_timezone(value)

    @field_validator("off_days")
    @classmethod
    def check_off_days(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        return None if value is None else _validate_off_days(value)

    def display_name(self) -> str:
        """Get display name."""
        return self.name

    def preferences(self, defaults: AvailabilityDefaults) -> AvailabilityPreferences:
        """Merge this person's overrides over the defaults."""
        return AvailabilityPreferences(
            timezone=self.timezone or defaults.timezone,
            working_hours_start=self.working_hours_start or defaults.working_hours_start,
            working_hours_end=self.working_hours_end or defaults.working_hours_end,
            off_days=frozenset(defaults.off_days if self.off_days is None else self.off_days),
        )


class GoogleConfig(BaseModel):
    """OAuth client used to refresh Google tokens."""
    client_id: str = ""
    client_secret: str = ""
    token_url: Optional[str] = None


class GraphConfig(BaseModel):
    """Azure AD application used to refresh Microsoft Graph tokens."""
    client_id: str = ""
    tenant_id: str = "common"
    client_secret: Optional[str] = None

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class SecretStoreConfig(BaseModel):
    """Where credential pairs live."""
    backend: Literal["keyring", "file", "memory"] = "keyring"
    path: Optional[Path] = None


class TimeoutsConfig(BaseModel):
    """Upstream call timeouts in seconds."""
    freebusy_seconds: float = Field(default=30.0, gt=0)
    list_seconds: float = Field(default=10.0, gt=0)


class AppConfig(BaseModel):
    """Application configuration."""
    provider: Literal["google", "graph", "mock"] = "google"
    google: GoogleConfig = Field(default_factory=GoogleConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    secret_store: SecretStoreConfig = Field(default_factory=SecretStoreConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    defaults: AvailabilityDefaults = Field(default_factory=AvailabilityDefaults)
    people: List[Person] = Field(default_factory=list)

    @field_validator("people")
    @classmethod
    def validate_people(cls, value: List[Person]) -> List[Person]:
        """Ensure aliases and person ids are unique."""
        seen_names: set[str] = set()
        seen_ids: set[str] = set()
        for person in value:
            name_key = person.name.lower()
            id_key = person.person_id.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate person name detected: {person.name}")
            if id_key in seen_ids:
                raise ValueError(f"Duplicate person id detected: {person.person_id}")
            seen_names.add(name_key)
            seen_ids.add(id_key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def find_person_by_name(self, name: str) -> Person | None:
        """Find a person by their name (alias)."""
        for person in self.people:
            if person.name.lower() == name.lower():
                return person
        return None

    def find_person_by_id(self, person_id: str) -> Person | None:
        """Find a person by their id."""
        for person in self.people:
            if person.person_id.lower() == person_id.lower():
                return person
        return None

    def resolve_person(self, identifier: str) -> Person:
        """
        Resolve a name/alias or person id to a configured person.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        person = self.find_person_by_name(identifier) or self.find_person_by_id(identifier)
        if person:
            return person

        raise ValueError(
            f"Unknown person identifier: '{identifier}'. "
            f"Use a configured name or person id."
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
