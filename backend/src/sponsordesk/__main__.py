"""Entry point for standalone backend process."""

import uvicorn

from sponsordesk.config import settings


def main() -> None:
    uvicorn.run(
        "sponsordesk.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
