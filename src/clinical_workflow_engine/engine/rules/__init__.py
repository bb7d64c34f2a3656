"""Rule model, evaluation and execution."""
