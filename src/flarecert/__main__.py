"""FlareCert entry point for ``python -m flarecert``."""
import sys

from flarecert.main import main

if __name__ == "__main__":
    sys.exit(main())
