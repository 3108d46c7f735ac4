"""Allow ``python -m doculens.cli`` execution."""

from doculens.cli.ingest import main

main()
