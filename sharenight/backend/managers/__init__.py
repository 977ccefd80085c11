"""Data access managers for the ShareNight backend.

Each module provides async functions (or, for screenshots, a manager class)
that encapsulate record access and business logic.  Managers accept
``AsyncSession`` as a parameter and raise domain exceptions (``LookupError``,
``ValueError``, ``PermissionError``), never HTTP exceptions -- that
translation is the router's responsibility.
"""
