"""auth/ -- Accounts, identity tokens and Instagram linkage for InstaCatalog.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/ or posts/.
api/ imports from auth/, not the other way around.
"""
