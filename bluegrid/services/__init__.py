"""Service package: business logic layer.

Services orchestrate business rules, call repositories for database work,
and never commit; routes own the transaction.
"""
