import sys

from content_graph.cli import main


sys.exit(main())
