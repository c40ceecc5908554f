"""revu-cli: Command-line interface for revu."""
