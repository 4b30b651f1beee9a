"""Serve the API with uvicorn using HOST and PORT from settings."""

import uvicorn

from src.config.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
