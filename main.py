#!/usr/bin/env python3
"""Main entry point for the whitelist gateway when run as a script."""

import asyncio
import sys
from pathlib import Path

# Add the package to Python path
sys.path.insert(0, str(Path(__file__).parent))

from whitelist_gateway.core.manager import GatewayService


async def main():
    """Main entry point."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else "whitelist-gateway.yaml"

    service = GatewayService.from_config_file(config_path)
    service.setup_logging()
    await service.serve_stdio()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutting down whitelist gateway...", file=sys.stderr)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
