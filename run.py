"""
Development entry point.

Run this script to start the console client against a local game server:

    python run.py --username alice --mode timed
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'src'))

from ttt_client.console import main

if __name__ == '__main__':
    sys.exit(main())
