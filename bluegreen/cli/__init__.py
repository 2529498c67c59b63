"""bluegreen CLI — Typer-based command-line interface.

Provides the ``bluegreen`` command with subcommands for deploying, rolling
back, promoting canaries, tearing down, and inspecting the host.

All output uses Rich for formatted terminal display.
"""
