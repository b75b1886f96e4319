# rx_matcher/__main__.py

"""Entry point for executing rx_matcher as a module.

This file allows the rx_matcher package to be executed as a script
using `python -m rx_matcher`.
"""

from .main import main

if __name__ == "__main__":
    main()
