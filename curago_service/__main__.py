"""Run the API with uvicorn: ``python -m curago_service``."""
import uvicorn

from .config import get_settings


def main():
    uvicorn.run("curago_service.main:app", host="0.0.0.0", port=get_settings().port)


if __name__ == "__main__":
    main()
