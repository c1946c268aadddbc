"""python -m catalog_gateway"""
import uvicorn

from catalog_gateway.core.config import settings
from catalog_gateway.core.logging import setup_logging


def main() -> None:
    setup_logging()
    uvicorn.run("catalog_gateway.app:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
