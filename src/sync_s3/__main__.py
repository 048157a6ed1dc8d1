# src/sync_s3/__main__.py
from sync_s3.cli import cli

if __name__ == "__main__":
    cli()
