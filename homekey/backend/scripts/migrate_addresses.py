# scripts/migrate_addresses.py
#
#   python scripts/migrate_addresses.py status
#   python scripts/migrate_addresses.py migrate --batch-size 200
#   python scripts/migrate_addresses.py duplicates
from __future__ import annotations

from app.entrypoints.cli import main


if __name__ == "__main__":
    main()
