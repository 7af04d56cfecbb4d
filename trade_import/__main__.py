# trade_import/__main__.py
import sys

from .importer import main

sys.exit(main())
