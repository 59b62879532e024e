"""notify/ -- Outbound notifications (one-time passcode emails).

Layer rule: imports only from core/.
"""
