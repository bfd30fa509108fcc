"""Allow ``python -m cfpush``."""

import sys

from cfpush.cli import main

sys.exit(main())
