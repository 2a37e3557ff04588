from __future__ import annotations

import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from xltemplate.excel.engine import analyze_template, extract_data_rows, get_template_summary


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python debug_dump_zones.py <template.xlsx> [--rows N]")
        sys.exit(1)

    template_path = Path(sys.argv[1])
    n = 10
    if "--rows" in sys.argv:
        i = sys.argv.index("--rows")
        if i + 1 < len(sys.argv):
            n = int(sys.argv[i + 1])

    model = analyze_template(template_path.read_bytes())
    zones = model.zones
    zone = zones.data_zone

    print(f"[INFO] sheet={model.sheet_name!r} sheets={len(model.sheet_names)}")
    print(
        f"[INFO] caption row={zones.caption_row.row_number}"
        f"{' (fallback)' if zones.caption_row.fallback else ''}"
        f" data={zone.start_row}..{zone.end_row} footer_start={zones.footer_start}"
    )
    for key, value in get_template_summary(model).to_dict().items():
        print(f"  {key}: {value}")

    print("----- DATA ROWS -----")
    for row in extract_data_rows(model)[:n]:
        print(" | ".join(row))


if __name__ == "__main__":
    main()
