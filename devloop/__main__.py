"""
Entry point for running devloop via `python -m devloop`.
"""

from .main import run

if __name__ == "__main__":
    run()
