"""Allow ``python -m lxinit``."""

import sys

from lxinit import cli

if __name__ == "__main__":
    sys.exit(cli.main())
