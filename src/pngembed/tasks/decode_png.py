"""Worker: parse a PNG file and write its inflated scanlines to *result_path*.

Only the metadata is printed back to the caller; the pixel data stays in
the result file.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict

from ..png import load_png_data
from . import run_worker


def main(path: Path, result_path: Path, strict_crc: bool = False) -> Dict[str, Any]:
    with open(path, "rb") as source, open(result_path, "wb") as sink:
        parsed = load_png_data(source, sink=sink, strict_crc=strict_crc)
    return parsed.to_dict()


if __name__ == "__main__":
    sys.exit(run_worker(main))
