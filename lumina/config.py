"""Engine configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Lumina settings, overridable through ``LUMINA_*`` environment variables."""

    # Scheduling
    DEBOUNCE_SECONDS: float = 0.1  # Delay between last mutation and auto-run
    AUTO_RUN: bool = True  # Run passes automatically after mutations

    # Sandbox
    SANDBOX_MAX_STEPS: int = 100_000  # Loop iterations allowed per evaluation

    # Grid composition
    GRID_BACKGROUND: str = "#0f172a"
    GRID_LABEL_HEIGHT: int = 30
    GRID_LABEL_FONT_SIZE: int = 14

    # Server settings
    HOST: str = "127.0.0.1"
    PORT: int = 8090
    LOG_LEVEL: str = "INFO"

    model_config = {"env_prefix": "LUMINA_"}


settings = Settings()
