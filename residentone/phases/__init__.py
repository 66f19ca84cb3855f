"""
Room phase workflow: registry, phase view, transition executor,
completion notifier and the board presenter interface.

Nothing in this package touches the database; it talks to a
``StageStore`` (see residentone.integrations.stage_gateway).
"""
