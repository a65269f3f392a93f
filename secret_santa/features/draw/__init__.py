"""
Draw feature package.

Generator, orchestrator and persistence for the one-shot gift assignment
of a group live together here.
"""
