
import logging

import uvicorn

from .config import get_settings


def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("meter_api.main:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
