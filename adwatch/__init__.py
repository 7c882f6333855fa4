"""Ad Watchdog: saved-search matching and alerting for classified listings."""

__version__ = "0.1.0"
