"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import ServiceItem


class SlotGridConfig(BaseModel):
    """Daily booking grid."""
    start_hour: int = 10
    end_hour: int = 20
    step_minutes: int = 30

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @field_validator("step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        """Ensure the step splits an hour evenly."""
        if value <= 0 or 60 % value != 0:
            raise ValueError(f"step_minutes must be a positive divisor of 60, got {value}")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "SlotGridConfig":
        """Ensure the salon opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self


class ServiceConfig(BaseModel):
    """Catalog entry as written in the config file."""
    id: str
    name: str
    price: int = Field(ge=0)
    duration_min: int = Field(gt=0)
    image: Optional[str] = None

    def to_item(self) -> ServiceItem:
        return ServiceItem(
            id=self.id,
            name=self.name,
            price=self.price,
            duration_min=self.duration_min,
            image=self.image,
        )


def _default_services() -> List[ServiceConfig]:
    return [
        ServiceConfig(id="s1", name="Premium Saç Kesimi", price=500, duration_min=45),
        ServiceConfig(id="s2", name="Sakal Tasarımı & Bakım", price=300, duration_min=30),
        ServiceConfig(id="s3", name="Cilt Bakımı & Maske", price=400, duration_min=40),
        ServiceConfig(id="s4", name="TYRANDEVU Özel Paket", price=1000, duration_min=90),
    ]


class StoreConfig(BaseModel):
    """Which record store to use and how to reach it."""
    backend: Literal["memory", "firestore"] = "memory"
    data_file: Optional[Path] = None
    project_id: str = ""
    api_key: str = ""
    database: str = "(default)"
    timeout_seconds: float = Field(default=10.0, gt=0)
    retries: int = Field(default=3, ge=0)

    @model_validator(mode="after")
    def validate_firestore(self) -> "StoreConfig":
        """Firestore needs a project id."""
        if self.backend == "firestore" and not self.project_id:
            raise ValueError("store.project_id is required for the firestore backend")
        return self


class ConsultationConfig(BaseModel):
    """Gemini hairstyle consultation settings."""
    api_key: str = ""
    api_key_env: str = "GEMINI_API_KEY"
    model: str = "gemini-2.5-flash-image"
    timeout_seconds: float = Field(default=60.0, gt=0)

    def resolve_api_key(self) -> str:
        """Config value first, then the environment variable."""
        return self.api_key or os.environ.get(self.api_key_env, "")


class AdminSeed(BaseModel):
    """Admin account created on first start if its phone number is unknown."""
    name: str = "Tarık Yalçın"
    phone_number: str = "5555555555"
    password: str = "admin"
    specialty: str = "Master Stylist"


class AppConfig(BaseModel):
    """Application configuration."""
    salon_name: str = "TYRANDEVU"
    slots: SlotGridConfig = Field(default_factory=SlotGridConfig)
    services: List[ServiceConfig] = Field(default_factory=_default_services)
    store: StoreConfig = Field(default_factory=StoreConfig)
    consultation: ConsultationConfig = Field(default_factory=ConsultationConfig)
    admin: AdminSeed = Field(default_factory=AdminSeed)
    default_customer_password: str = "123456"

    @field_validator("services")
    @classmethod
    def validate_services(cls, value: List[ServiceConfig]) -> List[ServiceConfig]:
        """Ensure the catalog is non-empty and service ids are unique."""
        if not value:
            raise ValueError("At least one service must be configured")
        seen_ids: set[str] = set()
        for service in value:
            if service.id in seen_ids:
                raise ValueError(f"Duplicate service id detected: {service.id}")
            seen_ids.add(service.id)
        return value

    def service_catalog(self) -> List[ServiceItem]:
        return [service.to_item() for service in self.services]

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

    @classmethod
    def load_or_default(cls, config_path: Optional[Path]) -> "AppConfig":
        """Load the given or default config file; fall back to built-in defaults if none exists."""
        path = config_path or get_default_config_path()
        if config_path is None and not path.exists():
            return cls()
        return cls.load_from_yaml(path)


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
