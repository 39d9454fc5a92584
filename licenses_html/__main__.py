import sys

from licenses_html.generator import main

sys.exit(main())
