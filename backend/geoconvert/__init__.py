"""Package initializer for the geospatial conversion service.

This package converts uploaded geospatial datasets (a single file or a zip
archive of shapefile components) into another format by orchestrating calls
to an external geometry-transformation engine, and returns the result either
as a single file or as a freshly assembled zip bundle.

- Uploads are classified by content sniffing, never by filename
- Shapefile components are handed to the engine in projection, attribute,
  geometry order
- Multi-file outputs are bundled through request-scoped temporary files
- Designed for FastAPI dependency injection and testability

See module sub-docstrings for details on each pipeline stage.
"""
