"""Allow ``python -m pyfindmy``."""

import sys

from pyfindmy.cli import main

sys.exit(main())
