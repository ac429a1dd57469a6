"""
netsurvey - Discovery Module Entry Point.

Allows running discovery as a module:
    python -m netsurvey.discovery plan <cidr>
    python -m netsurvey.discovery scan <cidr>
    python -m netsurvey.discovery vlans <switch...>
"""

import sys

from netsurvey.discovery.cli import main

if __name__ == '__main__':
    sys.exit(main())
