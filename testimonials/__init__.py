"""testimonials/ -- User testimonials and the admin moderation workflow.

Layer rule: testimonials/ imports from core/ and auth/ only. api/ imports
from testimonials/, not the other way around.
"""
