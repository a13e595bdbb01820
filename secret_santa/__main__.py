"""Run the service with uvicorn: python -m secret_santa"""
import uvicorn

from secret_santa.core.config import settings

if __name__ == "__main__":
    uvicorn.run("secret_santa.main:app", host=settings.host, port=settings.port)
