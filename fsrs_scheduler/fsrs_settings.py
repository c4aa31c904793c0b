from pathlib import Path

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from fsrs_scheduler.fsrs_parameters import PartialParameters


class FSRSSettings(BaseSettings):
    """
    Scheduler overrides loaded from:
    1. Keyword arguments
    2. Environment variables (FSRS_*)
    3. Config file (./fsrs.toml)
    Unset fields fall back to the library defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="FSRS_",
        toml_file="fsrs.toml",
        extra="ignore",
    )

    request_retention: float|None = None
    maximum_interval: int|None = None
    w: list[float]|None = None
    enable_fuzz: bool|None = None
    enable_short_term: bool|None = None
    learning_steps: list[str]|None = None
    relearning_steps: list[str]|None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )

    @classmethod
    def from_toml(cls, toml_file: Path|str) -> "FSRSSettings":
        values = TomlConfigSettingsSource(cls, toml_file=Path(toml_file))()
        return cls(**values)

    def to_partial(self) -> PartialParameters:
        return PartialParameters(**self.model_dump(exclude_none=True))
