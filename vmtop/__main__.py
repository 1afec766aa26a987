"""Allow ``python -m vmtop``."""

from vmtop.cli.main import main

if __name__ == "__main__":
    main()
