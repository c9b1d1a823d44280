"""Run devloop from a source checkout."""

from devloop.main import run

if __name__ == "__main__":
    run()
