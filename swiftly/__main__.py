"""Run the kernel with uvicorn: ``python -m swiftly``."""

import uvicorn

from swiftly.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "swiftly.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
        reload=settings.environment == "development",
    )


if __name__ == "__main__":
    main()
