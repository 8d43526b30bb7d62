import sys

from mqtt2influxdb.cli import main

sys.exit(main())
