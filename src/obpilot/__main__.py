import sys

from obpilot.cli import main

sys.exit(main())
