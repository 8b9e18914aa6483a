"""
FlowLens Module Entry Point
============================

Allows running the FlowLens CLI via: python -m flowlens
"""

from flowlens.cli import main

if __name__ == "__main__":
    main()
