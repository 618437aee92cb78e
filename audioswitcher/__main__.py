# audioswitcher/__main__.py
# `python -m audioswitcher` behaves like the installed console script and the
# frozen plugin executable the Stream Deck application launches.

from .cli import main

if __name__ == "__main__":
    import sys
    sys.exit(main())
