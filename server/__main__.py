"""Run the reindexer API: ``python -m server`` or the ``reindexer`` script."""

import uvicorn

from config import Settings


def main():
    settings = Settings.load()
    uvicorn.run("server.api:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
