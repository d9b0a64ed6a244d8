"""Allow running as: python -m facenet_match"""

import sys

from .cli import main

sys.exit(main())
