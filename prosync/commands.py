"""
Flask CLI commands.

    flask export-snapshot [PATH]   write the snapshot to PATH (default: EXPORT_DIR)
    flask import-snapshot PATH     replace all data with the snapshot at PATH
    flask pull-remote              replace all data with REMOTE_SNAPSHOT_URL's snapshot
    flask change-script [PATH]     write the SQL change script to PATH (default: remote, else EXPORT_DIR)
    flask seed                     create the bootstrap admin / welcome project if missing
"""

import json

import click


def register_commands(app):
    def sync():
        return app.extensions["sync"]

    @app.cli.command("export-snapshot")
    @click.argument("path", required=False)
    def export_snapshot_cmd(path):
        """Export users, projects and agenda as a JSON snapshot."""
        if path:
            with open(path, "w", encoding="utf-8") as fh:
                json.dump(sync().export_snapshot(), fh, indent=2, ensure_ascii=False)
            click.echo(f"Snapshot written to {path}")
        else:
            click.echo(sync().export_to_sink().message)

    @app.cli.command("import-snapshot")
    @click.argument("path")
    @click.confirmation_option(prompt="This replaces ALL users, projects and agenda items. Continue?")
    def import_snapshot_cmd(path):
        """Replace all data with a JSON snapshot file."""
        with open(path, "rb") as fh:
            result = sync().import_snapshot(fh.read())
        click.echo(result.message)

    @app.cli.command("pull-remote")
    @click.confirmation_option(prompt="This replaces ALL users, projects and agenda items. Continue?")
    def pull_remote_cmd():
        """Replace all data with the configured remote snapshot."""
        click.echo(sync().pull_remote().message)

    @app.cli.command("change-script")
    @click.argument("path", required=False)
    def change_script_cmd(path):
        """Generate the SQL change script."""
        if path:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(sync().generate_change_script())
            click.echo(f"Change script written to {path}")
        else:
            click.echo(sync().push_change_script().message)

    @app.cli.command("seed")
    def seed_cmd():
        """Seed the bootstrap dataset into collections never written before."""
        users = app.extensions["users"].list()
        projects = app.extensions["projects"].list()
        app.extensions["agenda"].list()
        click.echo(f"{len(users)} user(s), {len(projects)} project(s) present.")
