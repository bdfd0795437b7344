import sys

from archpi.cli import main

sys.exit(main())
