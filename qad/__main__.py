"""
python -m qad で CLI を起動するエントリポイント
"""

from .cli import app

if __name__ == "__main__":
    app()
