"""CLI interface for Live KB Sync."""

import importlib

import click

# Map command names to their module:attribute for lazy import
_COMMANDS = {
    "pipeline": "live_kb_sync.cli.pipeline:pipeline",
}


class LazyGroup(click.Group):
    """
    Lazy loading of CLI commands to avoid hard dependencies at top level.

    Subcommand modules are imported only when the command is invoked.
    """

    def list_commands(self, ctx):
        # Keep stable ordering for help output
        return list(_COMMANDS.keys())

    def get_command(self, ctx, name):
        target = _COMMANDS.get(name)
        if not target:
            return None
        module_path, attr = target.split(":", 1)
        mod = importlib.import_module(module_path)
        return getattr(mod, attr)


@click.command(cls=LazyGroup)
def main():
    """Live KB Sync CLI."""
    pass


if __name__ == "__main__":
    main()
