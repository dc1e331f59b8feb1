import sys

from framescan.cli import main

sys.exit(main())
