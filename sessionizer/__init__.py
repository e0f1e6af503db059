"""sessionizer - fuzzy-pick a project directory and open it as a tmux session."""

__version__ = "0.1.0"
