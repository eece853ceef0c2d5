"""Pure transforms from upstream JSON to response models.

Each upstream schema gets a declarative field table plus a transform
function. Transforms never perform I/O.
"""
