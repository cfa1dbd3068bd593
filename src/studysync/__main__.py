#!/usr/bin/env python3
"""
StudySync entry point for direct module execution.

This module allows running the sync agent via 'python -m studysync'.
"""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
