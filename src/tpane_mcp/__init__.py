"""t-pane: run assistant shell commands in a visible tmux pane."""

__version__ = "0.4.0"

__all__ = ["__version__"]
