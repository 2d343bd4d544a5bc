"""Allow running as ``python -m medialend``."""

from .cli import main

if __name__ == "__main__":
    main()
