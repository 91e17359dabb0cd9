# Clio board: task lifecycle, column ordering and audit trail
#
# Components:
#   schema.py     - Entities (Task, Item, Divider, Routine, Note, AuditEntry) and enums
#   store.py      - SQLite store handle, schema, transactions
#   ledger.py     - Dense position ordering for columns and checklists
#   tasks.py      - Task/checklist state machine (TaskService)
#   snapshot.py   - Frozen checklist copies taken at archive time
#   dividers.py   - Time-of-day dividers sharing the Today position space
#   routines.py   - Routine containers (weak task/note grouping)
#   notes.py      - Free-form notes, convertible to tasks
#   audit.py      - Append-only before/after audit trail
#   config.py     - YAML config and logging setup
#   errors.py     - NotFound / InvalidArgument / Conflict / StorageFailure
#   validation.py - Field validators
#   board.py      - open_board(): store + services bundle
