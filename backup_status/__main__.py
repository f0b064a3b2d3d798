import sys

from backup_status.main import main

sys.exit(main())
