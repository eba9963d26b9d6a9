"""Indent Ledger - daily order ledger backed by a single workbook."""

from indent_ledger.api import app, create_app

__all__ = ["app", "create_app"]
__version__ = "0.1.0"


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from indent_ledger.config import settings

    uvicorn.run(
        "indent_ledger.api:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
