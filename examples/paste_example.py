"""Summarise a saved scrape from the command line.

Run with:
    python -m examples.paste_example metrics.txt
"""

import sys

from promscope.core.units import format_value, infer_unit
from promscope.runtime.session import ExplorerSession


def main(path: str) -> None:
    session = ExplorerSession()
    with open(path, encoding="utf-8") as handle:
        session.ingest_manual(handle.read())

    for group in session.catalog():
        print(f"[{group.prefix}]")
        for entry in group.metrics:
            total = session.scalar(entry.name)
            shown = format_value(total, infer_unit(entry.name))
            print(f"  {entry.name} ({entry.type}): {shown}")

    for name in session.discover().histograms:
        print(f"\n{name}")
        for row in session.histogram(name).rows:
            print(f"  {row.range:>14}  {row.values['All']:g}")


if __name__ == "__main__":
    main(sys.argv[1])
