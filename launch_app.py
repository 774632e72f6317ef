#!/usr/bin/env python3
"""Spatial Vignette viewer launcher

This script sets up the Python path and launches the viewer.

Usage:
    python launch_app.py                          # Default configuration
    python launch_app.py --config my_config.yaml  # Custom configuration
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

if __name__ == "__main__":
    from ui.viewer_window import main

    sys.exit(main())
