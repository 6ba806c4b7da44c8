"""Portfolio statistics and the AI narrative summary."""
