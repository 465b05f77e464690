"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model, kernel and module, is imported so that
``Base.metadata`` contains its table definition before tables are created.

Architecture position
---------------------
**Modules layer** -- utility.  ``ledger_kernel.db.engine.create_tables``
imports it lazily, inside the function, so the kernel keeps no module-level
dependency on ``ledger_modules``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Kernel tables first: module tables reference accounts and
    journal_entries by FK.  Idempotent -- repeated calls are harmless.
    """
    import ledger_kernel.models  # noqa: F401
    import ledger_kernel.services.sequence_service  # noqa: F401
    import ledger_modules.inventory.orm  # noqa: F401
