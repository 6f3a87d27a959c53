"""Command Center — agent session state synchronization for terminal panels."""

__version__ = "0.4.0"
