"""Run the top-of-book printer: python -m prime_feed."""

import sys

from prime_feed.cli import main


if __name__ == "__main__":
    sys.exit(main())
