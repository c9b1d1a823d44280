"""
devloop - A development-loop supervisor.

Runs a target program as a child process, watches the directory tree that
contains it, and restarts the child whenever a relevant source file changes.
"""

__version__ = "0.1.0"
