"""Allow ``python -m ccver``."""

from ccver.cli.main import main

if __name__ == "__main__":
    main()
