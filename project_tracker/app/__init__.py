"""
Application package.

``core`` holds infrastructure (configuration, logging, the record
store, hashing, validation and the partial-update builder),
``schemas`` the pydantic read and update models, and ``services`` the
ownership-scoped operations on users, projects and tasks.
"""
