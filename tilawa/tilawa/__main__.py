import sys

from tilawa.cli import main

sys.exit(main())
