"""ComicTrackr core package.

Modules:
- models: comic, want and persisted-state types
- store: collection store (mutations, wishlist reconciliation)
- query: filtering, sorting and series reconciliation
- storage: persistence adapters for the three stored values
- series: reference issue lists per series
- images: cover image validation and encoding
- config: INI parsing and config object
"""
