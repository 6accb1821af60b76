"""Domain types shared by the ticket engine, agent adapters, and quality gates.

The domain layer stays free of I/O side effects.
"""
