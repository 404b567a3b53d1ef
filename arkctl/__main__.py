"""Run the arkctl CLI with ``python -m arkctl``."""

import sys

from arkctl.cli import main

sys.exit(main())
