"""Sales ranking & personnel evaluation dashboard loader.

Turns loosely structured spreadsheet tabs into typed records: sales
rankings per region/department, evaluation rubrics and merged per-employee
self/manager evaluations, filtered per viewer grant.
"""

__version__ = "0.1.0"
