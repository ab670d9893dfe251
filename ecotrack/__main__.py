"""
Run the EcoTrack server with uvicorn: ``python -m ecotrack``.
"""

import uvicorn

from .main import app
from .config import settings


def main() -> None:
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    main()
