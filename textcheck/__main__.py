import sys

from .core.launcher import main

sys.exit(main())
