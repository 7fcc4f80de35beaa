"""
GameShelf application package.

Layered the same way throughout:

  gameshelf/repositories/  pure I/O: reading and writing rows through a
                             SQLAlchemy session.
  gameshelf/services/      business logic: validation, status transitions,
                             aggregation and catalog sync.

``gameshelf_web.create_app`` is the integration point: it builds the
repositories and services once at start-up and stores them on the Flask
application, so route handlers never reach for module-level globals.
"""
