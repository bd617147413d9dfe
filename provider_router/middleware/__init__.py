"""HTTP middleware and Prometheus instrumentation."""
