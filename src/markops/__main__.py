from markops.cli import cli

cli()
