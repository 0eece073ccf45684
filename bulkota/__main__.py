import sys

from bulkota.app.main import main

sys.exit(main())
