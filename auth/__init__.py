"""auth/ -- Authentication and authorization package for Folio.

Layer rule: auth/ imports stdlib, third-party libraries and core/ only.
It does NOT import from api/, testimonials/ or projects/.
api/ imports from auth/, not the other way around.
"""
