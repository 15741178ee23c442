import sys

from webhook_gateway.cli import main

sys.exit(main())
