"""
Analysis services: analyzers, aggregators and provider adapters.

Import from the submodules directly; this package does not re-export them
because the schemas depend on services.algorithm_config.
"""
