"""Allow running as: python -m grant_import"""

import sys

from .cli import main

sys.exit(main())
