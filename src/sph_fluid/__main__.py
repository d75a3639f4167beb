import sys

from sph_fluid.cli import main

sys.exit(main())
