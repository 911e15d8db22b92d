import sys

from dotenv import load_dotenv
from loguru import logger

from healthsphere.api.mock_backend import run_server
from healthsphere.config import get_settings

load_dotenv()


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(
        f"Starting {settings.app_name} mock backend on "
        f"{settings.mock_backend_host}:{settings.mock_backend_port}"
    )
    run_server()
