"""
Request telemetry service.
"""
