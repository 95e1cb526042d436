"""
Process-wide runtime wiring.
"""
