#!/usr/bin/env python3
"""
Prime Feed - Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Runs the level-2 top-of-book printer.

- Compatible with PM2 process management
- Handles SIGINT/SIGTERM gracefully
- Exits 0 on graceful shutdown, non-zero on failure

============================================================
USAGE
============================================================
Direct execution:
    python app.py --products BTC-USD

With PM2:
    pm2 start app.py --interpreter python --name prime-feed -- --products BTC-USD

Environment-based configuration:
    PRIME_PRODUCT_IDS=BTC-USD,ETH-USD LOG_LEVEL=DEBUG python app.py

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from prime_feed.cli import main


if __name__ == "__main__":
    sys.exit(main())
