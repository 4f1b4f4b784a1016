"""
Test fixtures for the coordination test suite.
"""

import os
import sys
from pathlib import Path

# Add backend to path
BACKEND_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_DIR))

# Point config at the example file before anything reads it
os.environ["COORDINATION_CONFIG_PATH"] = str(BACKEND_DIR.parent / "coordination.yaml.example")
