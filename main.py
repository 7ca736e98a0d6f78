"""
BackupBot - Entry Point
=======================

Run the bot from a checkout: python main.py
"""

import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from backupbot.__main__ import run


if __name__ == "__main__":
    run()
