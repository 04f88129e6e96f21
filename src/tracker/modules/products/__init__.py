"""Products module - units of software and their issue-key counters."""
