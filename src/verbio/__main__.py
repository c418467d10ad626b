"""Entry point for 'python -m verbio' command."""

from verbio.cli import main

if __name__ == "__main__":
    main()
