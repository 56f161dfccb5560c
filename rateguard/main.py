import logging

import uvicorn

from rateguard.core.app_factory import create_app
from rateguard.core.config import settings

logger = logging.getLogger(__name__)

app = create_app(settings)


def run() -> None:
    """Serve ``app`` with uvicorn on the configured host and port."""
    logger.info(
        "server.listening",
        extra={"host": settings.server.host, "port": settings.server.port},
    )
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_config=None)


if __name__ == "__main__":
    run()
