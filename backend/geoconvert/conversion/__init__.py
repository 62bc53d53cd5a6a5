"""Conversion orchestration pipeline.

Stages, leaves first:
    - archive: zip entries to and from virtual file sets
    - classifier: content sniffing and upload normalization
    - selector: input selection and engine declaration order
    - commands: instruction construction and option validation
    - engine: adapter boundary to the transformation engine
    - assembler: single-file or bundled conversion results
    - tempfiles: request-scoped temporary artifacts
    - pipeline: the async entry point tying the stages together
"""
