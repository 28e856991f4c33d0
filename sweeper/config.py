"""
RTDB Sweeper — Configuration via environment variables.
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ConfigurationError(RuntimeError):
    """Raised at startup when settings are missing or unusable."""


class RootConfig(BaseModel):
    """One swept root and the child keys it never deletes."""

    path: str = Field(..., min_length=1)
    exempt_keys: list[str] = Field(default_factory=list)

    @field_validator("path")
    @classmethod
    def _strip_slashes(cls, v: str) -> str:
        v = v.strip("/")
        if not v:
            raise ValueError("root path must not be '/'")
        return v

    @property
    def exempt_set(self) -> frozenset[str]:
        return frozenset(k.lower() for k in self.exempt_keys)


class InstanceConfig(BaseModel):
    """One Firebase RTDB database to sweep."""

    label: str = Field(..., min_length=1)
    db_url: str = Field(..., min_length=1)
    cred_file: str = ""
    service_account_json: str = ""


DEFAULT_ROOTS = [
    RootConfig(path="BESAUNTCT", exempt_keys=["SetRuContent"]),
    RootConfig(path="SetDevicesNV", exempt_keys=["SetRuContent"]),
    RootConfig(path="SetDevicesNV2", exempt_keys=["SetRuContent"]),
    RootConfig(path="SetDevicesVNGDH", exempt_keys=["SetRuContent"]),
]


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Retention policy
    cleanup_roots: list[RootConfig] = Field(
        default_factory=lambda: list(DEFAULT_ROOTS),
        description="Roots swept by the generic pass (JSON list in env)",
    )
    nested_root: RootConfig | None = Field(
        default_factory=lambda: RootConfig(path="VNGDH1", exempt_keys=["SetRuContents"]),
        description="Root whose records keep updateTime under Devices",
    )
    retention_hours: float = Field(default=3, gt=0)
    reference_timezone: str = Field(
        default="Asia/Ho_Chi_Minh",
        description="Zone used for updateTime values without an offset",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Trigger
    trigger_path: str = Field(default="/cleanup")
    cron_path: str = Field(default="", description="If set, trigger moves to /cron/<cron_path>")
    auth_token: str = Field(default="", description="Shared secret for the trigger (optional)")
    sweep_interval_minutes: int = Field(
        default=0, ge=0, description="In-process schedule; 0 disables it"
    )

    # Firebase
    firebase_db_url: str = Field(default="", description="Firebase RTDB URL")
    firebase_cred_file: str = Field(
        default="", description="Path to Firebase service account key JSON"
    )
    google_application_credentials: str = Field(default="")
    firebase_service_account_json: str = Field(
        default="", description="Service account key as an inline JSON string"
    )
    firebase_instances: list[InstanceConfig] = Field(
        default_factory=list,
        description="Several RTDB instances (JSON list); overrides firebase_db_url",
    )

    # Sweep history
    database_url: str = Field(
        default="sqlite+aiosqlite:///./sweeper.db",
        description="Async SQLAlchemy DB URL",
    )

    @field_validator("reference_timezone")
    @classmethod
    def _valid_zone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {v!r}") from e
        return v

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.reference_timezone)

    @property
    def effective_trigger_path(self) -> str:
        """Resolve the trigger route, honouring CRON_PATH."""
        if self.cron_path:
            return f"/cron/{self.cron_path.strip('/')}"
        return "/" + self.trigger_path.strip("/")

    def instances(self) -> list[InstanceConfig]:
        """Configured store instances; raises ConfigurationError if none usable."""
        if self.firebase_instances:
            labels = [i.label for i in self.firebase_instances]
            if len(set(labels)) != len(labels):
                raise ConfigurationError(f"Duplicate firebase instance labels: {labels}")
            return list(self.firebase_instances)
        if not self.firebase_db_url:
            raise ConfigurationError(
                "Missing FIREBASE_DB_URL. Please set your RTDB URL in env."
            )
        return [
            InstanceConfig(
                label="firebase",
                db_url=self.firebase_db_url,
                cred_file=self.firebase_cred_file or self.google_application_credentials,
                service_account_json=self.firebase_service_account_json,
            )
        ]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
