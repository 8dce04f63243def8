"""
Main entry point when running the mpc_control module with python -m.
"""

from .server import cli_main

if __name__ == "__main__":
    cli_main()
