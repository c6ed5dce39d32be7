# =============================================================================
# src/cli/__main__.py - Package Entry Point
# =============================================================================
#
# Enables ``python -m src.cli``, which runs the ingestion CLI since
# document management is the most common CLI task.  For questions, run
#     python -m src.cli.ask "your question"
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.ingest import main

main()
