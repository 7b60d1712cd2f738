"""Entry point for ``python -m relay_payroll``."""

import sys

from relay_payroll.cli import main

if __name__ == "__main__":
    sys.exit(main())
