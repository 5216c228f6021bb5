"""Module entry-point to run the chatmeter server."""
from __future__ import annotations

import uvicorn

from chatmeter.core.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("chatmeter.api.main:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
