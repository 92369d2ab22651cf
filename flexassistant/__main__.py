import sys

from flexassistant.cli import main

sys.exit(main())
