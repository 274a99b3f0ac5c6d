"""Dashline - Entry Point.

Token analytics metric snapshot pipeline CLI.

Usage:
    python main.py snapshots sweep --ranges 24h,7d
    python main.py snapshots show pepe
    python main.py snapshots clear pepe --metric priceV2:pepe
    python main.py snapshots ops-metrics
"""

from src.cli import create_app

app = create_app()


if __name__ == "__main__":
    app()
