import sys

from rootforge.cli import main

sys.exit(main())
