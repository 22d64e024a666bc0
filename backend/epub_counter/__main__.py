import sys

from epub_counter.cli.main import main

sys.exit(main())
