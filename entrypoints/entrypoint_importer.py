#!/usr/bin/env python3
# entrypoint_importer.py
"""
Точка входа для CSV импорта водителей.
Пример: python entrypoints/entrypoint_importer.py --csv Coordinates.csv
"""

import sys
from pathlib import Path

# Добавляем корневую директорию в путь
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

from ridehail.importer.importer import main


if __name__ == "__main__":
    sys.exit(main())
