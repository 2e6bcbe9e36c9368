"""dashboard: web process list backed by the netperf accounting engine."""
