import sys

from yalc.cli import main

sys.exit(main())
