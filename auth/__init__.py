"""auth/ -- Authentication package for the todolist service.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, cache/, or tasks/.
api/ imports from auth/, not the other way around.
"""
