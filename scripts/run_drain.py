#!/usr/bin/env python3
"""Run the replication log drain loop."""

import sys
sys.path.insert(0, "src")

from replog.cli import main

if __name__ == "__main__":
    main(["run"] + sys.argv[1:])
