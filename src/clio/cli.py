"""CLI entry point for clio-server command."""

import asyncio
import sys

from clio.config.settings import Settings
from clio.server import initialize, run_server
from clio.utils.logging import setup_logging


def main() -> None:
    """Main entry point."""
    # Load settings from environment and configs/clio.toml
    settings = Settings()

    setup_logging(settings.logging)

    try:
        initialize(settings=settings)
        asyncio.run(run_server())
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)
    except Exception as e:
        print(f"Server error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
