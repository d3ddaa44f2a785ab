"""
Root entry point for the Mood Journal application.
Bootstraps the mood_journal package and runs the CLI.
"""

import sys
import os

# Ensure the project root is in python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from mood_journal.main import main

if __name__ == "__main__":
    sys.exit(main())
