"""Allow ``python -m cinebrew``."""

from cinebrew.main import main

if __name__ == "__main__":
    raise SystemExit(main())
