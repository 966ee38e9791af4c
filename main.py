#main.py
"""
Main entry point for the Relay Card utility.
Parses the command line and runs one command against the card chain.
"""

import sys                 # Imports the sys module to hand the exit status back to the shell

from relay_card.cli import main  # Imports the command-line entry point


if __name__ == "__main__":
    # Entry point to run the main function
    sys.exit(main())
