"""Core tool, file and reporter helpers used by the pipeline stages."""
