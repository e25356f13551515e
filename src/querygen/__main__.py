import sys

from querygen.cli import main

sys.exit(main())
