"""
Pytest configuration and shared fixtures.
This file ensures the project root is in sys.path for imports and points the
app at an in-memory SQLite database before anything reads settings.
"""

import os
import sys
from pathlib import Path

# Settings are read on first import of app.config
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENVIRONMENT"] = "testing"
os.environ.pop("REFERENCE_TABLES_PATH", None)

# Add project root to sys.path so we can import domain, services, etc.
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
