#!/usr/bin/env python3
"""Convert a concatenated usfm or sfm file to one text file per book."""
import logging
import os
from sys import exit
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from os import path
from typing import Any

from u2t import proc_readsfm, proc_writelines, sfm_convert, LOG, META


def splitbooks(textlines: list[str]) -> dict[str, list[str]]:
    """Split the lines of a concatenated file into books using \\id lines."""
    i: Any

    # get index of locations for \id tags
    idx = [_[0] for _ in enumerate(textlines) if _[1].startswith(r"\id ")]

    # remove duplicate book names
    i = len(idx) - 1
    while i > 0:
        if textlines[idx[i]][4:7] == textlines[idx[i - 1]][4:7]:
            del idx[i]
        i -= 1

    # split into individual books
    books = {}
    i = 0
    while i < len(idx):
        bname = textlines[idx[i]][4:7]
        start = idx[i]
        try:
            end = idx[i + 1]
        except IndexError:
            end = len(textlines)
        books[bname] = textlines[start:end]
        i += 1
    return books


def processfiles2(
    fname: str,
    fencoding: str | None,
    outdir: str,
    nonormalize: bool,
) -> list[str]:
    """Unsplit a single concatenated usfm file and convert each book."""
    # read file
    LOG.info("Reading filename and splitting into separate books... ")
    books = splitbooks(proc_readsfm(fname, fencoding))
    if not books:
        LOG.error(r"*** no \id lines found in %s. ***", fname)
        exit(1)

    os.makedirs(outdir, exist_ok=True)
    outfiles = []
    for bname, booklines in books.items():
        LOG.info("... Processing %s ...", bname)
        outfile = path.join(outdir, f"{bname}.txt")
        proc_writelines(sfm_convert(booklines), outfile, nonormalize)
        outfiles.append(outfile)
    return outfiles


# ---------------------------------------------------------------------------#


if __name__ == "__main__":
    PARSER = ArgumentParser(
        formatter_class=ArgumentDefaultsHelpFormatter,
        description="""
            convert a concatenated USFM or SFM bible to plain text.
        """,
        epilog=f"""
            * Version: {META['VERSION']} * {META['DATE']} * This script is public domain. *
        """,
    )
    PARSER.add_argument("-d", help="debug mode", action="store_true")
    PARSER.add_argument(
        "-e",
        help="set encoding to use for USFM files",
        default=None,
        metavar="encoding",
    )
    PARSER.add_argument(
        "-o", help="specify output directory", metavar="output_dir", default="."
    )
    PARSER.add_argument("-v", help="verbose output", action="store_true")
    PARSER.add_argument(
        "-n", help="disable unicode NFC normalization", action="store_true"
    )
    PARSER.add_argument(
        "file",
        help="file to process",
        metavar="filename",
    )
    ARGS = PARSER.parse_args()

    if not path.isfile(ARGS.file):
        LOG.error("*** input file not present or not a normal file. ***")
        exit(1)

    if ARGS.v:
        LOG.setLevel(logging.INFO)
    if ARGS.d:
        LOG.setLevel(logging.DEBUG)
    processfiles2(ARGS.file, ARGS.e, ARGS.o, ARGS.n)
