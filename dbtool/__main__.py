"""
Entry point for `python -m dbtool`.
"""

from .main import main

if __name__ == '__main__':
    main()
