"""
Notifications package — SMS / WhatsApp delivery.

Modules:
    messages    — alert text and per-hazard safety instructions
    dispatcher  — recipient validation and concurrent fan-out
    channels/   — provider backends (simulation, twilio)
"""
