"""
wikihist.jobs: runner and command line entry point.

- runner: ReconstructionRunner (parse -> reconstruct -> staged write)
- cli: ``wikihist users|pages``
- logging: structlog configuration for command line runs
"""
