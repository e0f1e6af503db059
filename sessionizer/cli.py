#!/usr/bin/env python3
"""
sessionizer - jump to a tmux session for a project directory.

Directories come from the globs configured in config.toml, merged with
the sessions already running in tmux. The selected entry is created if
needed and then attached (or switched to, when already inside tmux).

Usage:
    sessionizer                    # pick from the catalog
    sessionizer -c ./config.toml   # use a specific config file
"""

import sys
from pathlib import Path
from typing import List, Optional

import click

from sessionizer import __version__, selector, tmux
from sessionizer.candidates import CandidateSession, build_catalog, scratch_candidate
from sessionizer.config import Config, ConfigError, load_config
from sessionizer.output import debug, error
from sessionizer.selector import Cancelled, Chosen, NewQuery, ProtocolError
from sessionizer.tmux import (
    DependencyMissing,
    LiveSession,
    MaterializationError,
    TmuxController,
)


def check_dependencies() -> None:
    if not tmux.is_available():
        raise DependencyMissing("tmux is not installed or could not be found in $PATH")
    if not selector.is_available():
        raise DependencyMissing("fzf is not installed or could not be found in $PATH")


def choose_session(
    catalog: List[CandidateSession], result: selector.SelectionResult
) -> Optional[CandidateSession]:
    """Map the selector result to the session to open (None = nothing to do)."""
    if isinstance(result, Cancelled):
        return None
    if isinstance(result, NewQuery):
        if result.is_empty:
            return None
        return scratch_candidate(result.query)
    if isinstance(result, Chosen):
        return catalog[result.index]
    raise TypeError(f"Unknown selection result: {result!r}")


def run(
    config: Config, controller: TmuxController, verbose: bool = False
) -> Optional[LiveSession]:
    """
    One sessionizer invocation: build the catalog, prompt, ensure, activate.

    Returns:
        The session the terminal was sent to, or None if the user backed out
    """
    debug(f"Config: {config}", verbose)

    live = controller.list_sessions()
    debug(f"Live sessions: {live}", verbose)

    catalog = build_catalog(config.sources, live, config.hide_attached_sessions)
    if not catalog:
        debug("Catalog is empty; type a name to open a scratch session", verbose)

    result = selector.prompt([c.label for c in catalog])
    debug(f"Selector result: {result}", verbose)

    candidate = choose_session(catalog, result)
    if candidate is None:
        debug("No selection made", verbose)
        return None

    session = controller.ensure_session(candidate.to_session_spec())
    controller.activate(session.name)
    return session


@click.command()
@click.option(
    "--config", "-c", "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Load configuration from FILE (default: ~/.config/sessionizer/config.toml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Print diagnostics to stderr")
@click.version_option(version=__version__)
def main(config_file: Optional[Path], verbose: bool):
    """Pick a project directory or running session and open it in tmux."""
    try:
        check_dependencies()
        config = load_config(config_file)
        run(config, TmuxController(), verbose=verbose)
    except (ConfigError, DependencyMissing, ProtocolError, MaterializationError) as e:
        error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
