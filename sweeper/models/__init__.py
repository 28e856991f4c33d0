from sweeper.models.sweep_run import SweepRun  # noqa: F401
