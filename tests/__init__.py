"""
Clusterwork Test Suite

This directory contains tests for the Clusterwork system:
- Unit tests for the engine, targets and tasks
- Pipeline tests for cloudup and nodeup against fakes
- CLI tests through typer's test runner
"""
