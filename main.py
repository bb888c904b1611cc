"""vSTRC Treasury Vault - Entry Point.

Usage:
    python main.py simulate run config/scenario-example.yaml
    python main.py simulate rate --market 95
    python main.py state show data/vstrc.db
"""

from vstrc.cli import create_app

app = create_app()


if __name__ == "__main__":
    app()
