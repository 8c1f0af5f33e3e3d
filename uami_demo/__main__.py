import sys

from uami_demo.cli import main

sys.exit(main())
