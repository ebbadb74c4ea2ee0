"""Configuration constants for the application stack deployment."""

from typing import Final

DEFAULT_APP_NAME: Final[str] = "enjoy-otel"
DEFAULT_REGION: Final[str] = "us-east-1"

ECS_TASKS_SERVICE_PRINCIPAL: Final[str] = "ecs-tasks.amazonaws.com"
LOG_RETENTION_IN_DAYS: Final[int] = 3

TASK_FAMILY: Final[str] = "app"
TASK_CPU: Final[str] = "1024"
TASK_MEMORY: Final[str] = "3072"
TASK_NETWORK_MODE: Final[str] = "awsvpc"
LAUNCH_TYPE: Final[str] = "FARGATE"
PLATFORM_VERSION: Final[str] = "1.4.0"
SCHEDULING_STRATEGY: Final[str] = "REPLICA"
SERVICE_DESIRED_COUNT: Final[int] = 1

CONTAINER_NAMES: Final[tuple[str, ...]] = ("upstream", "downstream", "collector")
ESSENTIAL_CONTAINERS: Final[frozenset[str]] = frozenset({"upstream", "downstream"})
