#!/usr/bin/env python3

r"""
Convert usx, usfm, and sfm bibles to plain text for page layout programs.

Notes:
   * output has one line per chapter number, heading, prose paragraph,
     and poetry line. Verse numbers are kept in front of their text.

   * footnotes, cross references, superscripts, figures, and alternate
     or published verse numbers are removed. All other character styles
     are flattened to their text.

   * identification, title, and introduction markup is not converted.

   * a paragraph with no verse marker in it is written as its own line.
     It is not joined to the line of the verse it continues.

   * verse numbers are kept exactly as they appear in the source.
     Ranges and suffixes (1-2, 3a) are not parsed.

This script is public domain. You may do whatever you want with it.

"""

#
#    uFDD6     - used to mark the start of a verse number during usx processing
#    uFDD7     - used to mark the end of a verse number during usx processing
#

# make pylint happier..
# pylint: disable=too-many-return-statements
# pylint: disable=consider-using-f-string

import logging
import os.path
import re
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from codecs import encode, lookup
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from itertools import chain
from sys import exit as sysexit
from typing import Any, NamedTuple
from unicodedata import normalize

import lxml.etree as et  # nosec

# -------------------------------------------------------------------------- #

META = {
    "USFM": "3.0",  # Targeted USFM version
    "USX": "3.0",  # Targeted USX version
    "VERSION": "0.3",  # THIS SCRIPT version
    "DATE": "2026-10-19",  # THIS SCRIPT revision date
}

# file extensions for each frontend
USXEXTENSIONS = {".usx"}
SFMEXTENSIONS = {".usfm", ".sfm"}

# -------------------------------------------------------------------------- #


class Role(Enum):
    """Paragraph roles used to decide how a block becomes output lines."""

    HEADING = "heading"
    PROSE = "prose"
    POETRY = "poetry"
    UNCLASSIFIED = "unclassified"


class Segment(NamedTuple):
    """Text belonging to one verse inside a paragraph."""

    label: str
    text: str


# -------------------------------------------------------------------------- #
# STYLE MAPPINGS

# identification, titles, introductions, and other markup that has no place
# in the output. These are known, so they are not reported as unhandled.
NOCONTENT = (
    # identification
    "id",
    "ide",
    "sts",
    "rem",
    "usfm",
    "h",
    "h1",
    "h2",
    "h3",
    "toc1",
    "toc2",
    "toc3",
    "toca1",
    "toca2",
    "toca3",
    # titles
    "mt",
    "mt1",
    "mt2",
    "mt3",
    "mt4",
    "mte",
    "mte1",
    "mte2",
    # introductions
    "imt",
    "imt1",
    "imt2",
    "imt3",
    "imt4",
    "imte",
    "imte1",
    "imte2",
    "is",
    "is1",
    "is2",
    "ip",
    "ipi",
    "im",
    "imi",
    "ipq",
    "imq",
    "ipr",
    "iq",
    "iq1",
    "iq2",
    "iq3",
    "ib",
    "ili",
    "ili1",
    "ili2",
    "iot",
    "io",
    "io1",
    "io2",
    "io3",
    "io4",
    "iex",
    "ie",
    # chapter labels and descriptions
    "cl",
    "cd",
    "cp",
    # blank line
    "b",
    # parallel passage references
    "r",
)

# usx paragraph styles
USXSTYLES: dict[str, Role] = dict(
    chain(
        (
            (_, Role.HEADING)
            for _ in (
                "s",
                "s1",
                "s2",
                "s3",
                "s4",
                "ms",
                "ms1",
                "ms2",
                "ms3",
                "mr",
                "sr",
                "d",
                "sp",
                "qa",
            )
        ),
        (
            (_, Role.PROSE)
            for _ in (
                "p",
                "m",
                "pi",
                "pi1",
                "pi2",
                "pi3",
                "mi",
                "pmo",
                "pm",
                "pmc",
                "pmr",
                "pc",
                "pr",
                "nb",
                "cls",
            )
        ),
        (
            (_, Role.POETRY)
            for _ in (
                "q",
                "q1",
                "q2",
                "q3",
                "q4",
                "qc",
                "qr",
                "qm",
                "qm1",
                "qm2",
                "qm3",
            )
        ),
        ((_, Role.UNCLASSIFIED) for _ in NOCONTENT),
    )
)

# usfm and sfm paragraph markers
SFMSTYLES: dict[str, Role] = dict(
    chain(
        (
            (_, Role.HEADING)
            for _ in (
                "s",
                "s1",
                "s2",
                "s3",
                "s4",
                "ms",
                "ms1",
                "ms2",
                "ms3",
                "mr",
                "sr",
                "d",
                "sp",
                "qa",
            )
        ),
        (
            (_, Role.PROSE)
            for _ in (
                "p",
                "m",
                "pi",
                "pi1",
                "pi2",
                "pi3",
                "mi",
                "pmo",
                "pm",
                "pmc",
                "pmr",
                "pc",
                "pr",
                "nb",
                "cls",
            )
        ),
        (
            (_, Role.POETRY)
            for _ in (
                "q",
                "q1",
                "q2",
                "q3",
                "q4",
                "qc",
                "qr",
                "qm",
                "qm1",
                "qm2",
                "qm3",
            )
        ),
        ((_, Role.UNCLASSIFIED) for _ in NOCONTENT),
    )
)

# usx elements that are dropped along with everything inside them
SKIPELEMENTS = {"note", "figure"}

# usx character styles that are dropped along with their text
SKIPCHARS = {"sup", "va", "vp", "ca"}

# -------------------------------------------------------------------------- #
# REGULAR EXPRESSIONS

# create a function to squeeze all regular spaces, carriage returns,
# and newlines into a single space.
SQUEEZE = partial(re.sub, r"[ \t\n\r]+", " ", flags=re.U + re.M + re.DOTALL)

# matches verse number placeholders added during usx processing
VERSEMARKRE = re.compile("\ufdd6([^\ufdd7]*)\ufdd7", re.U)

# regex string used to build the span removal regexes below.
SPANRE_S = r"""
        # put the marker into a named group called 'tag'
        (?P<tag>

            # tags always start with a backslash and may have a + symbol which
            # indicates that it's a nested character style.
            \\\+?

            # match the tags we want to match.
            (?:{})
        )

        # there is always at least one space separating the tag and the content
        \s

        # everything up to the end marker is removed
        .*?

        # tag end marker
        (?P=tag)\*
    """

# footnotes and endnotes
FOOTNOTERE = re.compile(SPANRE_S.format("fe|f"), re.U + re.VERBOSE + re.DOTALL)

# cross references
CROSSREFRE = re.compile(SPANRE_S.format("x"), re.U + re.VERBOSE + re.DOTALL)

# superscripts, figures, and alternate or published numbers
SKIPSPANRE = re.compile(
    SPANRE_S.format("|".join(sorted(SKIPCHARS | {"fig"}, key=len, reverse=True))),
    re.U + re.VERBOSE + re.DOTALL,
)
del SPANRE_S

# match milestones such as \qt-s |who="Paul"\* and \zaln-e\*
MILESTONERE = re.compile(
    r"""
        # milestones start with a backslash
        \\

        # match alphanumeric characters followed by a start or end suffix
        [A-Za-z0-9]+-[se]

        # there may be attributes before the end tag
        (?:\s[^\\]*)?

        # tag end marker
        \\\*
    """,
    re.U + re.VERBOSE,
)

# match word level attributes like |strong="G5485" up to the end marker
ATTRIBRE = re.compile(r"\|[^\\]*(?=\\\+?[A-Za-z0-9]+\*)", re.U)

# regex for finding usfm tags
USFMRE = re.compile(
    r"""
    # the first character of a usfm tag is always a backslash
    \\

    # a plus symbol marks the start of a nested character style.
    # this may or may not be present.
    \+?

    # tag names are ascii letters
    [A-Za-z]+

    # tags may or may not be numbered
    \d?

    # a word boundary to mark the end of our tags.
    \b

    # character style closing tags ends with an asterisk.
    \*?

""",
    re.U + re.VERBOSE,
)

# chapter marker lines
CHAPTERRE = re.compile(r"^\\c\s+(?P<num>\S+)\s*(?P<text>.*)$", re.U)

# verse marker lines
VERSERE = re.compile(r"^\\v\s+(?P<num>\S+)\s*(?P<text>.*)$", re.U)

# lines that start with a paragraph level marker
BLOCKRE = re.compile(r"^\\(?P<tag>[A-Za-z]+\d*)(?:\s+(?P<text>.*))?$", re.U)

# find block markers embedded in the text of a line.
# longest tags come first so that \pi1 isn't matched as \p.
BLOCKSPLITRE = re.compile(
    r"\s+(?=\\(?:{})(?:\s|$))".format(
        "|".join(sorted(chain(SFMSTYLES, ["c", "v"]), key=len, reverse=True))
    ),
    re.U,
)

# -------------------------------------------------------------------------- #

# logging.basicConfig(format="%(levelname)s: %(message)s")
logging.basicConfig(format="%(message)s")
LOG = logging.getLogger(__name__)
LOG.setLevel(logging.WARNING)

# -------------------------------------------------------------------------- #


def classify(code: str | None, table: dict[str, Role]) -> Role:
    """Get the role for a paragraph style code."""
    return table.get(code or "", Role.UNCLASSIFIED)


def stripverses(text: str) -> str:
    """Remove verse number placeholders from text."""
    return SQUEEZE(VERSEMARKRE.sub("", text)).strip()


def segment(text: str) -> tuple[list[Segment], bool]:
    """
    Split paragraph text into verse segments.

    Returns the segments along with a flag indicating whether any verse
    starts in the text. Text in front of the first verse doesn't belong
    to any verse and is dropped. Segments with no text are dropped too.

    """
    parts = VERSEMARKRE.split(text)
    if len(parts) == 1:
        return [], False

    if parts[0].strip():
        LOG.debug("Dropping text before first verse: %s", parts[0].strip())

    segments = [
        Segment(label, SQUEEZE(body).strip())
        for label, body in zip(parts[1::2], parts[2::2])
    ]
    return [_ for _ in segments if _.text], True


def emitblock(role: Role, segments: list[Segment], fallback: str = "") -> list[str]:
    """
    Render a paragraph block as output lines.

    Poetry gets one line per verse segment. Everything else gets a single
    line. When there are no segments the fallback text is used as is.

    """
    segments = [_ for _ in segments if _.text]
    if segments:
        rendered = [f"{_.label} {_.text}" for _ in segments]
        return rendered if role is Role.POETRY else [" ".join(rendered)]

    text = SQUEEZE(fallback).strip()
    return [text] if text else []


# -------------------------------------------------------------------------- #
# USX


def usx_flatten(elem: Any) -> str:
    """Get the text of an element with notes and superscripts removed."""
    parts = [elem.text or ""]
    for child in elem:
        # comments and processing instructions only contribute their tail
        if not isinstance(child.tag, str) or child.tag in SKIPELEMENTS:
            pass
        elif child.tag == "char" and child.get("style") in SKIPCHARS:
            pass
        elif child.tag == "verse":
            # usx 3 verse end milestones have no number
            if child.get("number") is not None:
                parts.append(f"\ufdd6{child.get('number').strip()}\ufdd7")
        else:
            parts.append(usx_flatten(child))
        parts.append(child.tail or "")
    return "".join(parts)


def usx_sanitize(elem: Any) -> str:
    """Get clean paragraph text with verse number placeholders."""
    return SQUEEZE(usx_flatten(elem)).strip()


def usx_paragraph(elem: Any) -> list[str]:
    """Convert a usx para element to output lines."""
    role = classify(elem.get("style"), USXSTYLES)

    if role is Role.HEADING:
        return emitblock(role, [], stripverses(usx_sanitize(elem)))

    if role in {Role.PROSE, Role.POETRY}:
        text = usx_sanitize(elem)
        segments, hasversestart = segment(text)
        if hasversestart:
            return emitblock(role, segments)
        return emitblock(role, [], stripverses(text))

    return []


def usx_convert(root: Any) -> list[str]:
    """
    Convert a usx document to output lines.

    Nothing before the first chapter is converted. Chapter and para
    elements are processed in document order.

    """
    lines: list[str] = []
    inmain = False
    for elem in root.iter("chapter", "para"):
        if elem.tag == "chapter":
            # usx 3 chapter end milestones have no number
            number = elem.get("number")
            if number is None:
                continue
            inmain = True
            lines.append(number)
        elif inmain:
            lines.extend(usx_paragraph(elem))
    return lines


def usx_styles(root: Any) -> list[str]:
    """Get paragraph styles used in a usx document."""
    return [_.get("style") for _ in root.iter("para") if _.get("style")]


# -------------------------------------------------------------------------- #
# USFM / SFM


@dataclass
class SfmState:
    """The paragraph block currently being built."""

    style: str | None = None
    segments: list[Segment] = field(default_factory=list)
    fallback: list[str] = field(default_factory=list)
    inmain: bool = False


def sfm_sanitize(text: str) -> str:
    """
    Remove usfm markup from a piece of text.

    Footnotes, cross references, superscripts, figures, and alternate
    numbers are removed with their content. All other markers are removed
    and their text is kept.

    """
    for regex in (FOOTNOTERE, CROSSREFRE, SKIPSPANRE):
        text = regex.sub("", text)
    text = ATTRIBRE.sub("", MILESTONERE.sub("", text))
    text = USFMRE.sub("", text).replace("\\*", "")
    text = text.replace("~", "\u00a0").replace("\\", "").replace("//", "")
    return SQUEEZE(text).strip()


def sfm_splitblock(text: str) -> tuple[str, str]:
    """Split text at the first block level marker found inside it."""
    parts = BLOCKSPLITRE.split(text, maxsplit=1)
    return (parts[0], parts[1]) if len(parts) == 2 else (text, "")


def sfm_flush(state: SfmState) -> list[str]:
    """
    Render the open paragraph block and reset state.

    Paragraph text in front of the first verse is dropped when the block
    has verses with text. Nothing is rendered before the first chapter.

    """
    role = classify(state.style, SFMSTYLES)
    segments = [_ for _ in state.segments if _.text]
    fallback = " ".join(state.fallback)
    if segments:
        if fallback:
            LOG.debug("Dropping text before first verse: %s", fallback)
        lines = emitblock(role, segments)
    else:
        lines = emitblock(role, [], fallback)
    if lines and not state.inmain:
        LOG.debug("Dropping text before first chapter: %s", " ".join(lines))
        lines = []
    state.style, state.segments, state.fallback = None, [], []
    return lines


def sfm_onchapter(state: SfmState, number: str) -> list[str]:
    """Process a chapter marker."""
    lines = sfm_flush(state)
    state.inmain = True
    return [*lines, number]


def sfm_onheading(state: SfmState, text: str) -> list[str]:
    """Process a heading marker. Headings are never left open."""
    lines = sfm_flush(state)
    heading = emitblock(Role.HEADING, [], sfm_sanitize(text))
    if heading and not state.inmain:
        LOG.debug("Dropping heading before first chapter: %s", heading[0])
        heading = []
    return [*lines, *heading]


def sfm_onparagraph(state: SfmState, code: str, text: str) -> list[str]:
    """Process a prose or poetry marker and start a new block."""
    lines = sfm_flush(state)
    state.style = code
    text = sfm_sanitize(text)
    if text:
        state.fallback.append(text)
    return lines


def sfm_onverse(state: SfmState, label: str, text: str) -> list[str]:
    """
    Process a verse marker.

    A verse outside of any paragraph is treated as prose. A verse with no
    text still starts a segment so that following lines can fill it.

    """
    if state.style is None:
        state.style = "p"
    state.segments.append(Segment(label, sfm_sanitize(text)))
    return []


def sfm_oncontinuation(state: SfmState, text: str) -> list[str]:
    """Add a line of text to the last verse, or to the paragraph if none."""
    text = sfm_sanitize(text)
    if not text:
        return []
    if state.segments:
        last = state.segments[-1]
        state.segments[-1] = last._replace(text=SQUEEZE(f"{last.text} {text}").strip())
    else:
        state.fallback.append(text)
    return []


def sfm_dispatch(state: SfmState, line: str, pending: deque[str]) -> list[str]:
    """
    Process a single logical line.

    Text that has to be handled as a line of its own, like a verse that
    shares a line with its paragraph marker, is put at the front of the
    pending queue.

    """
    match = CHAPTERRE.match(line)
    if match:
        if match.group("text"):
            pending.appendleft(match.group("text"))
        return sfm_onchapter(state, match.group("num"))

    match = BLOCKRE.match(line)
    if match and match.group("tag") in SFMSTYLES:
        role = classify(match.group("tag"), SFMSTYLES)
        text = match.group("text") or ""
        if role is Role.UNCLASSIFIED:
            return sfm_flush(state)

        if role is Role.HEADING:
            # a verse can't start in a heading, only its number is dropped
            verse = VERSERE.match(text)
            if verse:
                text = verse.group("text")
            text, rest = sfm_splitblock(text)
            if rest:
                pending.appendleft(rest)
            return sfm_onheading(state, text)

        if VERSERE.match(text):
            pending.appendleft(text)
            text = ""
        else:
            text, rest = sfm_splitblock(text)
            if rest:
                pending.appendleft(rest)
        return sfm_onparagraph(state, match.group("tag"), text)

    match = VERSERE.match(line)
    if match:
        text, rest = sfm_splitblock(match.group("text"))
        if rest:
            pending.appendleft(rest)
        return sfm_onverse(state, match.group("num"), text)

    text, rest = sfm_splitblock(line)
    if rest:
        pending.appendleft(rest)
    return sfm_oncontinuation(state, text)


def sfm_convert(lines: Iterable[str]) -> list[str]:
    """Convert lines of usfm or sfm text to output lines."""
    state = SfmState()
    output: list[str] = []
    pending: deque[str] = deque()
    source = iter(lines)
    while True:
        if pending:
            line = pending.popleft()
        else:
            line = next(source, None)
            if line is None:
                break
        line = line.strip()
        if line:
            output.extend(sfm_dispatch(state, line, pending))
    output.extend(sfm_flush(state))
    return output


def sfm_styles(lines: Iterable[str]) -> list[str]:
    """Get paragraph level markers used at the start of lines."""
    styles = []
    for line in lines:
        match = BLOCKRE.match(line.strip())
        if match is None or match.group("tag") in {"c", "v"}:
            continue
        # character styles like \w and \nd are closed on the same line
        if re.search(r"\\\+?{}\*".format(match.group("tag")), line):
            continue
        styles.append(match.group("tag"))
    return styles


# -------------------------------------------------------------------------- #


def getencoding(text: bytes) -> str:
    """Get encoding from file text."""
    lines = [
        _.decode("utf8", errors="replace")
        for _ in text.split(b"\n")
        if _.startswith(b"\\ide ")
    ]
    return "utf_8_sig" if not lines else lines[0].partition(" ")[2].lower().strip()


def proc_readusx(fname: str) -> Any:
    """Read and parse a usx file and return the root element."""
    parser = et.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = et.parse(fname, parser).getroot()  # nosec
    except et.XMLSyntaxError as err:
        LOG.error("ERROR: Unable to parse %s... aborting conversion.", fname)
        LOG.error("    %s", err)
        sysexit(1)

    if root.tag != "usx":
        LOG.error("ERROR: %s has no usx root element... aborting conversion.", fname)
        LOG.error("    root element is <%s>", root.tag)
        sysexit(1)
    return root


def proc_readsfm(fname: str, fencoding: str | None) -> list[str]:
    """Read a usfm or sfm file and return its lines."""
    with open(fname, "rb") as ifile:
        text = ifile.read()

    # get encoding. Abort processing if we don't know the encoding.
    # default to utf_8_sig encoding if no encoding is specified.
    bookencoding = fencoding if fencoding is not None else getencoding(text)
    try:
        bookencoding = lookup(bookencoding).name

        # use utf_8_sig in place of utf_8 encoding to eliminate errors that
        # may occur if a Byte Order Mark is present in the input file.
        if "utf-8" in bookencoding:
            bookencoding = "utf_8_sig"
        return text.decode(bookencoding).splitlines()
    except LookupError:
        LOG.error("ERROR: Unknown encoding... aborting conversion.")
        LOG.error(r"    encoding for %s is --> %s", fname, bookencoding)
        sysexit(1)
    except UnicodeDecodeError as err:
        LOG.error("ERROR: Unable to decode %s as %s.", fname, bookencoding)
        LOG.error("    %s", err)
        sysexit(1)


def proc_writelines(lines: list[str], outfile: str, nonormalize: bool) -> None:
    """Write output lines to a file with a byte order mark."""
    text = "".join(f"{_}\n" for _ in lines)

    # apply NFC normalization to text unless explicitly disabled.
    if not nonormalize:
        text = normalize("NFC", text)

    with open(outfile, "wb") as ofile:
        ofile.write(encode(text, "utf_8_sig"))


def convertfile(
    fname: str, outdir: str | None, fencoding: str | None, nonormalize: bool
) -> str | None:
    """Convert a single file. Returns the output file name or None if skipped."""
    ext = os.path.splitext(fname)[1].lower()
    if ext in USXEXTENSIONS:
        LOG.info("... Processing %s ...", fname)
        root = proc_readusx(fname)
        lines = usx_convert(root)
        unhandled = set(usx_styles(root)).difference(USXSTYLES)
    elif ext in SFMEXTENSIONS:
        LOG.info("... Processing %s ...", fname)
        textlines = proc_readsfm(fname, fencoding)
        lines = sfm_convert(textlines)
        unhandled = set(sfm_styles(textlines)).difference(SFMSTYLES)
    else:
        LOG.info("Skipping %s (not a usx, usfm, or sfm file)", fname)
        return None

    if unhandled:
        LOG.warning(
            "Unhandled paragraph styles in %s: %s", fname, ", ".join(sorted(unhandled))
        )

    outfile = os.path.join(
        outdir if outdir is not None else os.path.dirname(fname),
        f"{os.path.splitext(os.path.basename(fname))[0]}.txt",
    )
    proc_writelines(lines, outfile, nonormalize)
    LOG.info("Wrote %d lines to %s", len(lines), outfile)
    return outfile


def processpath(
    inpath: str,
    outdir: str | None = None,
    fencoding: str | None = None,
    nonormalize: bool = False,
) -> list[str]:
    """Process a file or every file in a directory. Returns output file names."""
    if os.path.isdir(inpath):
        fnames = [
            _
            for _ in sorted(os.path.join(inpath, __) for __ in os.listdir(inpath))
            if os.path.isfile(_)
        ]
    elif os.path.isfile(inpath):
        fnames = [inpath]
    else:
        LOG.error("*** input path %s not present or not a file or directory. ***", inpath)
        sysexit(1)

    if outdir is not None:
        os.makedirs(outdir, exist_ok=True)

    outfiles = []
    for fname in fnames:
        outfile = convertfile(fname, outdir, fencoding, nonormalize)
        if outfile is not None:
            outfiles.append(outfile)
    return outfiles


# -------------------------------------------------------------------------- #


if __name__ == "__main__":
    PARSER = ArgumentParser(
        formatter_class=ArgumentDefaultsHelpFormatter,
        description="""
            convert USX, USFM, and SFM bibles to plain text.
        """,
        epilog=f"""
            * Version: {META["VERSION"]} * {META["DATE"]} * This script is public domain. *
        """,
    )
    PARSER.add_argument("-d", help="debug mode", action="store_true")
    PARSER.add_argument(
        "-e",
        help="set encoding to use for USFM and SFM files",
        default=None,
        metavar="encoding",
    )
    PARSER.add_argument(
        "-o",
        help="specify output directory (defaults to the input file's directory)",
        default=None,
        metavar="output_dir",
    )
    PARSER.add_argument("-v", help="verbose output", action="store_true")
    PARSER.add_argument(
        "-n", help="disable unicode NFC normalization", action="store_true"
    )
    PARSER.add_argument(
        "path",
        help="file or directory to process",
        metavar="path",
    )
    ARGS = PARSER.parse_args()

    if ARGS.v:
        LOG.setLevel(logging.INFO)
    if ARGS.d:
        LOG.setLevel(logging.DEBUG)
    processpath(ARGS.path, ARGS.o, ARGS.e, ARGS.n)
