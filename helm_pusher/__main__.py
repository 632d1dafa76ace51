import sys

from helm_pusher.cli import main

if __name__ == "__main__":
    sys.exit(main())
