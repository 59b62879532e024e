"""auth/ -- Accounts, one-time passcodes, sessions and role checks.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, commerce/, content/, or webhooks/.
notify/ is reached only through the Mailer protocol passed into AuthFlow.
"""
