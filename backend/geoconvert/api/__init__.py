"""API router subpackage for the conversion service.

Submodules:
    - convert: Endpoints for converting uploads and listing the supported
      formats and options.
"""
