"""projects/ -- Portfolio project catalogue (public reads, admin writes).

Layer rule: projects/ imports from core/ only.
"""
