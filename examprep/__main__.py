"""
Module entry point for: python -m examprep

Allows running the toolkit directly as a module:
    python -m examprep parse <markdown_path> [options]
    python -m examprep batch <directory> <destination> [options]
    python -m examprep explain <directory> [options]
    python -m examprep serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
