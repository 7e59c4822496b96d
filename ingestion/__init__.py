import csv
from typing import List, Optional, TextIO

import ingestion.amex as amex
import ingestion.bank as bank
import ingestion.chase as chase

_INGESTION_MODULES = {
    "amex": amex,
    "bank": bank,
    "chase": chase,
}

# Detection order; the generic bank format goes last
_DETECTION_ORDER = (chase, amex, bank)


def get_ingestion_module(module_name: str):
    """Get an ingestion module by name."""
    if module_name not in _INGESTION_MODULES:
        raise ValueError(f"Unknown ingestion module: {module_name}")
    return _INGESTION_MODULES[module_name]


def get_available_modules():
    """Get list of available ingestion modules."""
    return list(_INGESTION_MODULES.keys())


def detect_format(header: List[str]) -> Optional[str]:
    """Name of the first module that recognises a CSV header row, or None."""
    for module in _DETECTION_ORDER:
        if module.detect(header):
            return module.NAME
    return None


def detect_source_format(source: TextIO) -> Optional[str]:
    """Sniff a CSV file's format from its leading rows, then rewind it.

    Rows are checked one at a time so that bank exports with a summary
    section above the header are still recognised.
    """
    start = source.tell()
    try:
        for i, row in enumerate(csv.reader(source)):
            if i >= 20:
                break
            if row:
                name = detect_format(row)
                if name:
                    return name
        return None
    finally:
        source.seek(start)
