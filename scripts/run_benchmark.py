#!/usr/bin/env python
"""
Script to run a spatial cross-validation benchmark.

Author: najahpokkiri
Date: 2025-06-15
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from spatial_cv.pipeline import main


if __name__ == "__main__":
    sys.exit(main())
