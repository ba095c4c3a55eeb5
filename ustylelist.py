#!/usr/bin/env python3

"""
List paragraph styles.

A simple script to generate a list of the paragraph styles that were used
in one or more usx, usfm, or sfm files, grouped by how u2t.py converts them.
Requires python3.

This script is public domain.

"""

import argparse
import collections
import glob
import os.path
from typing import Counter, Dict, List

from u2t import (
    SFMEXTENSIONS,
    SFMSTYLES,
    USXEXTENSIONS,
    USXSTYLES,
    Role,
    classify,
    proc_readsfm,
    proc_readusx,
    sfm_styles,
    usx_styles,
)

# -------------------------------------------------------------------------- #

VERSION = "1.0.0"

# -------------------------------------------------------------------------- #


def countstyles(fnames: List[str]) -> Dict[str, Counter[str]]:
    """Count paragraph styles used in files, keyed by file type."""
    counts: Dict[str, Counter[str]] = {
        "usx": collections.Counter(),
        "sfm": collections.Counter(),
    }

    filenames = []
    for _ in fnames:
        if "*" in _:
            filenames.extend(glob.glob(_))
        else:
            filenames.append(_)

    for fname in filenames:
        ext = os.path.splitext(fname)[1].lower()
        if ext in USXEXTENSIONS:
            counts["usx"].update(usx_styles(proc_readusx(fname)))
        elif ext in SFMEXTENSIONS:
            counts["sfm"].update(sfm_styles(proc_readsfm(fname, None)))

    return counts


def groupstyles(counts: Counter[str], usx: bool) -> Dict[Role, List[str]]:
    """Group styles by the role they have when converted."""
    groups: Dict[Role, List[str]] = {_: [] for _ in Role}
    table = USXSTYLES if usx else SFMSTYLES
    for style in sorted(counts):
        groups[classify(style, table)].append(style)
    return groups


def processstyles(fnames: List[str], tcounts: bool) -> None:
    """Process paragraph styles in all files."""
    counts = countstyles(fnames)

    # output results.
    print()
    for kind in ("usx", "sfm"):
        if not counts[kind]:
            continue
        groups = groupstyles(counts[kind], kind == "usx")
        table = USXSTYLES if kind == "usx" else SFMSTYLES
        print(f"{kind.upper()} styles:")
        for role in Role:
            if role is Role.UNCLASSIFIED:
                continue
            if groups[role]:
                print(f"    {role.value}: {', '.join(groups[role])}")

        # known styles with no content are ignored, unknown ones are unhandled.
        ignored = [_ for _ in groups[Role.UNCLASSIFIED] if _ in table]
        unknown = [_ for _ in groups[Role.UNCLASSIFIED] if _ not in table]
        if ignored:
            print(f"    ignored: {', '.join(ignored)}")
        if unknown:
            print(f"    unhandled: {', '.join(unknown)}")
        print()

        # print style usage counts
        if tcounts:
            print(f"{kind.upper()} style usage count:\n")
            for i in sorted(counts[kind]):
                print(f"{counts[kind][i]: 8} - {i}")
            print(f"\nTotal number of styles found:   {sum(counts[kind].values())}\n")


# -------------------------------------------------------------------------- #


if __name__ == "__main__":
    PARSER = argparse.ArgumentParser(
        description="""
            A simple script to generate a list of paragraph styles that were
            used in one or more usx, usfm, or sfm files.
        """,
        epilog=f"""
            * Version: {VERSION} * This script is public domain *
        """,
    )
    PARSER.add_argument(
        "-c", help="include usage counts for styles", action="store_true"
    )
    PARSER.add_argument(
        "file", help="name of file to process (wildcards allowed)", nargs="+"
    )
    ARGS = PARSER.parse_args()

    processstyles(ARGS.file, ARGS.c)
