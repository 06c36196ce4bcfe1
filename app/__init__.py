"""HTTP front end for the benchmark service."""
