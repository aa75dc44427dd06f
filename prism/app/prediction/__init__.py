"""
Prediction package — turns weather readings into disaster records.

Modules:
    severity   — severity bands, warnings and hazard type rules
    scheduler  — periodic scan of monitored areas
"""
