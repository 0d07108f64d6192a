"""
ASGI entry point.

Used by uvicorn / gunicorn:

    uvicorn server.asgi:app --app-dir backend
"""

import os

from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()


def main() -> None:
    """Console entry point (avatar-control-surface)."""
    import uvicorn  # pylint: disable=import-outside-toplevel

    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
