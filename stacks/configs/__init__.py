from .app_config import (
    AppConfig,
    EnvValidationResult,
    ImageTags,
    MainStackConfig,
    NetworkConfig,
    consume_env,
    validate_env,
)

__all__ = [
    "AppConfig",
    "EnvValidationResult",
    "ImageTags",
    "MainStackConfig",
    "NetworkConfig",
    "consume_env",
    "validate_env",
]
