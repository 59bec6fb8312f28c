"""Command line tools for seqnet."""
