import sys

from ota_release_tools.cli import main


if __name__ == "__main__":
    sys.exit(main())
