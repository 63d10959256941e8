import sys

from rr_load_balancer.cli import main

sys.exit(main())
