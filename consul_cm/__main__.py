import sys

from consul_cm.cli import main

sys.exit(main())
