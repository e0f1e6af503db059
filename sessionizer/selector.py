"""
fzf-based selector.

Each entry is written to fzf as "<index> <label>" with the index hidden
from the user (--with-nth 2..). fzf runs with --print-query, so its
output is always the typed query followed by the selected line, if any:

    "query\\n"               -> nothing selected (NewQuery)
    "query\\n3 ~/src/foo\\n"  -> entry 3 selected (Chosen)

Pressing tab prints the query and exits, which lets the user name a new
session even when the query matches an existing entry.
"""

import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

FZF_ARGS = [
    "--exact",
    "--print-query",
    "--no-sort",
    "--tac",
    "--cycle",
    "--with-nth", "2..",
    "--bind", "tab:print-query",
]

# fzf exit codes
EXIT_OK = 0
EXIT_NO_MATCH = 1
EXIT_INTERRUPTED = 130


class ProtocolError(Exception):
    """Raised when fzf can't be run or returns something we can't interpret."""

    pass


@dataclass(frozen=True)
class Chosen:
    index: int
    label: str
    query: str = ""


@dataclass(frozen=True)
class NewQuery:
    query: str

    @property
    def is_empty(self) -> bool:
        return self.query == ""


@dataclass(frozen=True)
class Cancelled:
    pass


SelectionResult = Union[Chosen, NewQuery, Cancelled]


def is_available() -> bool:
    return shutil.which("fzf") is not None


def add_indexes(labels: Sequence[str]) -> List[str]:
    return [f"{i} {label}" for i, label in enumerate(labels)]


def strip_index(line: str) -> Tuple[int, str]:
    """Split an "<index> <label>" line back into its parts."""
    index, sep, label = line.partition(" ")
    if not sep:
        raise ProtocolError(f"Unable to parse index from selected line: {line!r}")
    try:
        return int(index), label
    except ValueError as e:
        raise ProtocolError(f"Unable to parse index from selected line: {line!r}") from e


def parse_output(output: str, count: int) -> SelectionResult:
    """
    Interpret fzf's stdout.

    Args:
        output: Raw stdout from fzf (--print-query)
        count: Number of entries that were offered

    Returns:
        Chosen or NewQuery

    Raises:
        ProtocolError: If the output has an unexpected shape
    """
    lines = output.split("\n")
    if len(lines) == 2:
        return NewQuery(query=lines[0])
    if len(lines) == 3:
        index, label = strip_index(lines[1])
        if not 0 <= index < count:
            raise ProtocolError(f"Selected index {index} is out of range")
        return Chosen(index=index, label=label, query=lines[0])
    raise ProtocolError("Invalid result returned from fzf")


def classify(returncode: int, output: str, count: int) -> SelectionResult:
    if returncode == EXIT_INTERRUPTED:
        return Cancelled()
    if returncode not in (EXIT_OK, EXIT_NO_MATCH):
        raise ProtocolError(f"fzf exited with status {returncode}")
    return parse_output(output, count)


def prompt(labels: Sequence[str], fzf_bin: str = "fzf") -> SelectionResult:
    """
    Let the user pick one of labels, or type the name of a new session.

    fzf draws its UI on the terminal and reports errors on stderr, which is
    inherited. The input is passed in one go; subprocess.run pumps stdin
    and stdout together, so a large catalog can't deadlock the pipes. Labels
    and output use surrogateescape, so directory names that aren't valid UTF-8
    pass through unchanged.

    Args:
        labels: Display labels in catalog order
        fzf_bin: fzf executable

    Returns:
        Chosen, NewQuery or Cancelled

    Raises:
        ProtocolError: If fzf can't be started or fails
    """
    entries = "".join(f"{line}\n" for line in add_indexes(labels))
    try:
        result = subprocess.run(
            [fzf_bin] + FZF_ARGS,
            input=entries,
            stdout=subprocess.PIPE,
            text=True,
            errors="surrogateescape",
        )
    except OSError as e:
        raise ProtocolError(f"Unable to run fzf: {e}") from e
    return classify(result.returncode, result.stdout, len(labels))
