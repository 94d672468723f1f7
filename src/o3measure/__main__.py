"""Command-line interface."""
import sys

from o3measure.main import main

if __name__ == "__main__":
    sys.exit(main())
