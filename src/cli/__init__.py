"""CLI tools for DocChat.

- ``python -m src.cli.ingest`` - ingest PDFs (single file or a whole
  directory), list, delete, and show store statistics.
- ``python -m src.cli.ask`` - ask a question and print the answer with
  its sources.

Both build their dependencies with :func:`src.dependencies.build_components`,
the same wiring the web server uses, and parse arguments with argparse.
"""
